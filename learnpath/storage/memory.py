"""Dict-backed learning store for development and tests."""

from copy import copy
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import UUID

from learnpath.courses.models import (
    Course,
    CourseStatus,
    Lesson,
    Quiz,
    QuizQuestion,
    sort_by_order_index,
)
from learnpath.notifications.models import Notification
from learnpath.progress.models import Enrollment, LessonCompletion
from learnpath.quizzes.models import QuizAttempt
from learnpath.reviews.models import Review
from learnpath.storage.base import DuplicateRecordError, LearningStore, StorageError


def _copy_question(question: QuizQuestion) -> QuizQuestion:
    return replace(question, options=list(question.options))


def _copy_attempt(attempt: QuizAttempt) -> QuizAttempt:
    return replace(attempt, answers=dict(attempt.answers))


class InMemoryStore(LearningStore):
    """Single-process store.

    Entities are copied on the way in and out so callers never share mutable
    state with the store. Composite keys are enforced the same way the
    Cassandra tables enforce them.
    """

    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._lessons: dict[UUID, Lesson] = {}
        self._quizzes_by_lesson: dict[UUID, Quiz] = {}
        self._questions: dict[UUID, dict[UUID, QuizQuestion]] = {}
        self._attempts: list[QuizAttempt] = []
        self._completions: dict[tuple[UUID, UUID], datetime] = {}
        self._enrollments: dict[tuple[UUID, UUID], Enrollment] = {}
        self._enrollment_keys: dict[UUID, tuple[UUID, UUID]] = {}
        self._reviews: dict[tuple[UUID, UUID], Review] = {}
        self._review_keys: dict[UUID, tuple[UUID, UUID]] = {}
        # user_id -> [(notification, expires_at)] in insertion order
        self._notifications: dict[UUID, list[tuple[Notification, datetime]]] = {}

    # Courses and lessons

    async def get_course(self, course_id: UUID) -> Course | None:
        course = self._courses.get(course_id)
        return copy(course) if course else None

    async def list_courses(self, status: CourseStatus | None = None) -> list[Course]:
        return [
            copy(c)
            for c in self._courses.values()
            if status is None or c.status == status
        ]

    async def save_course(self, course: Course) -> None:
        self._courses[course.id] = copy(course)

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        lessons = [
            copy(lesson)
            for lesson in self._lessons.values()
            if lesson.course_id == course_id
        ]
        return sort_by_order_index(lessons)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        lesson = self._lessons.get(lesson_id)
        return copy(lesson) if lesson else None

    async def save_lesson(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = copy(lesson)

    # Quizzes

    async def get_quiz_for_lesson(self, lesson_id: UUID) -> Quiz | None:
        quiz = self._quizzes_by_lesson.get(lesson_id)
        return copy(quiz) if quiz else None

    async def save_quiz(self, quiz: Quiz) -> None:
        self._quizzes_by_lesson[quiz.lesson_id] = copy(quiz)
        self._questions.setdefault(quiz.id, {})

    async def list_questions(self, quiz_id: UUID) -> list[QuizQuestion]:
        questions = self._questions.get(quiz_id, {}).values()
        return sort_by_order_index([_copy_question(q) for q in questions])

    async def save_question(self, question: QuizQuestion) -> None:
        self._questions.setdefault(question.quiz_id, {})[question.id] = _copy_question(
            question
        )

    async def delete_question(self, quiz_id: UUID, question_id: UUID) -> None:
        self._questions.get(quiz_id, {}).pop(question_id, None)

    async def insert_quiz_attempt(self, attempt: QuizAttempt) -> None:
        self._attempts.append(_copy_attempt(attempt))

    async def list_quiz_attempts(
        self, student_id: UUID, quiz_id: UUID
    ) -> list[QuizAttempt]:
        return [
            _copy_attempt(a)
            for a in self._attempts
            if a.student_id == student_id and a.quiz_id == quiz_id
        ]

    # Progress

    async def insert_completion(
        self, student_id: UUID, lesson_id: UUID, completed_at: datetime
    ) -> None:
        key = (student_id, lesson_id)
        if key in self._completions:
            raise DuplicateRecordError("Lesson already completed")
        self._completions[key] = completed_at

    async def delete_completion(self, student_id: UUID, lesson_id: UUID) -> None:
        self._completions.pop((student_id, lesson_id), None)

    async def list_completions(self, student_id: UUID) -> list[LessonCompletion]:
        return [
            LessonCompletion(student_id=sid, lesson_id=lid, completed_at=at)
            for (sid, lid), at in self._completions.items()
            if sid == student_id
        ]

    async def get_enrollment(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        enrollment = self._enrollments.get((student_id, course_id))
        return copy(enrollment) if enrollment else None

    async def list_enrollments(self, student_id: UUID) -> list[Enrollment]:
        return [
            copy(e) for (sid, _), e in self._enrollments.items() if sid == student_id
        ]

    async def insert_enrollment(self, enrollment: Enrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key in self._enrollments:
            raise DuplicateRecordError("Student already enrolled")
        self._enrollments[key] = copy(enrollment)
        self._enrollment_keys[enrollment.id] = key

    async def update_enrollment_progress(
        self, enrollment_id: UUID, percentage: int
    ) -> None:
        key = self._enrollment_keys.get(enrollment_id)
        if key is None:
            raise StorageError(f"Enrollment {enrollment_id} not found", "not_found")
        enrollment = self._enrollments[key]
        enrollment.progress_percentage = percentage
        enrollment.updated_at = datetime.now(UTC)

    # Reviews

    async def get_review(self, review_id: UUID) -> Review | None:
        key = self._review_keys.get(review_id)
        return copy(self._reviews[key]) if key else None

    async def get_student_review(
        self, course_id: UUID, student_id: UUID
    ) -> Review | None:
        review = self._reviews.get((course_id, student_id))
        return copy(review) if review else None

    async def list_reviews(self, course_id: UUID) -> list[Review]:
        return [copy(r) for (cid, _), r in self._reviews.items() if cid == course_id]

    async def insert_review(self, review: Review) -> None:
        key = (review.course_id, review.student_id)
        if key in self._reviews:
            raise DuplicateRecordError("Course already reviewed")
        self._reviews[key] = copy(review)
        self._review_keys[review.id] = key

    async def update_review(self, review: Review) -> None:
        key = self._review_keys.get(review.id)
        if key is None:
            raise StorageError(f"Review {review.id} not found", "not_found")
        stored = self._reviews[key]
        stored.rating = review.rating
        stored.comment = review.comment
        stored.updated_at = review.updated_at

    async def delete_review(self, review: Review) -> None:
        key = self._review_keys.pop(review.id, None)
        if key is not None:
            self._reviews.pop(key, None)

    # Notifications

    def _live_notifications(self, user_id: UUID) -> list[tuple[Notification, datetime]]:
        now = datetime.now(UTC)
        entries = [e for e in self._notifications.get(user_id, []) if e[1] > now]
        if entries:
            self._notifications[user_id] = entries
        else:
            self._notifications.pop(user_id, None)
        return entries

    async def insert_notification(
        self, notification: Notification, ttl_seconds: int
    ) -> None:
        entries = self._live_notifications(notification.user_id)
        expires_at = datetime.now(UTC) + timedelta(seconds=ttl_seconds)
        entries.append((notification, expires_at))
        self._notifications[notification.user_id] = entries

    async def list_notifications(
        self, user_id: UUID, limit: int
    ) -> list[Notification]:
        entries = self._live_notifications(user_id)
        return [notification for notification, _ in entries[-limit:]]

    async def delete_notifications(self, user_id: UUID, up_to: datetime) -> None:
        entries = [
            e for e in self._live_notifications(user_id) if e[0].created_at > up_to
        ]
        if entries:
            self._notifications[user_id] = entries
        else:
            self._notifications.pop(user_id, None)
