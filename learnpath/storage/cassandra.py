"""Cassandra-backed learning store.

Uses prepared statements executed through ``session.aexecute``. Uniqueness
of (student, lesson) completions and (student, course) enrollments comes
from the table primary keys plus lightweight transactions (``IF NOT
EXISTS``), so two concurrent inserts cannot both succeed.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from cassandra import DriverException
from cassandra.cluster import NoHostAvailable

from learnpath.courses.models import Course, CourseStatus, Lesson, Quiz, QuizQuestion
from learnpath.notifications.models import Notification
from learnpath.progress.models import Enrollment, LessonCompletion
from learnpath.quizzes.models import QuizAttempt
from learnpath.reviews.models import Review
from learnpath.storage.base import DuplicateRecordError, LearningStore, StorageError


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class CassandraStore(LearningStore):
    """LearningStore over the tables in ``*_TABLES_CQL``."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        ks = self.keyspace

        # Courses
        self._get_course = self.session.prepare(
            f"SELECT * FROM {ks}.courses WHERE id = ?"
        )
        self._list_courses = self.session.prepare(f"SELECT * FROM {ks}.courses")
        self._list_courses_by_status = self.session.prepare(
            f"SELECT * FROM {ks}.courses WHERE status = ?"
        )
        self._upsert_course = self.session.prepare(f"""
            INSERT INTO {ks}.courses
            (id, title, description, price, level, duration_hours, status,
             category_id, instructor_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        # Lessons
        self._get_lesson = self.session.prepare(
            f"SELECT * FROM {ks}.lessons WHERE id = ?"
        )
        self._upsert_lesson = self.session.prepare(f"""
            INSERT INTO {ks}.lessons
            (id, course_id, title, description, lesson_type, order_index,
             video_url, pdf_url, content, duration_minutes, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._list_course_lesson_ids = self.session.prepare(
            f"SELECT lesson_id FROM {ks}.lessons_by_course WHERE course_id = ?"
        )
        self._link_lesson = self.session.prepare(f"""
            INSERT INTO {ks}.lessons_by_course (course_id, order_index, lesson_id)
            VALUES (?, ?, ?)
        """)
        self._unlink_lesson = self.session.prepare(f"""
            DELETE FROM {ks}.lessons_by_course
            WHERE course_id = ? AND order_index = ? AND lesson_id = ?
        """)

        # Quizzes
        self._get_quiz = self.session.prepare(
            f"SELECT * FROM {ks}.quizzes_by_lesson WHERE lesson_id = ?"
        )
        self._upsert_quiz = self.session.prepare(f"""
            INSERT INTO {ks}.quizzes_by_lesson
            (lesson_id, id, title, description, passing_score, time_limit_minutes)
            VALUES (?, ?, ?, ?, ?, ?)
        """)
        self._list_questions = self.session.prepare(
            f"SELECT * FROM {ks}.quiz_questions WHERE quiz_id = ?"
        )
        self._upsert_question = self.session.prepare(f"""
            INSERT INTO {ks}.quiz_questions
            (quiz_id, order_index, id, question, options, correct_answer, explanation)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._delete_question = self.session.prepare(f"""
            DELETE FROM {ks}.quiz_questions
            WHERE quiz_id = ? AND order_index = ? AND id = ?
        """)
        self._insert_attempt = self.session.prepare(f"""
            INSERT INTO {ks}.quiz_attempts
            (student_id, quiz_id, attempted_at, id, score, answers, passed)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._list_attempts = self.session.prepare(f"""
            SELECT * FROM {ks}.quiz_attempts WHERE student_id = ? AND quiz_id = ?
        """)

        # Completions
        self._insert_completion = self.session.prepare(f"""
            INSERT INTO {ks}.lesson_completions (student_id, lesson_id, completed_at)
            VALUES (?, ?, ?) IF NOT EXISTS
        """)
        self._delete_completion = self.session.prepare(f"""
            DELETE FROM {ks}.lesson_completions
            WHERE student_id = ? AND lesson_id = ?
        """)
        self._list_completions = self.session.prepare(
            f"SELECT * FROM {ks}.lesson_completions WHERE student_id = ?"
        )

        # Enrollments
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {ks}.enrollments WHERE student_id = ? AND course_id = ?
        """)
        self._list_enrollments = self.session.prepare(
            f"SELECT * FROM {ks}.enrollments WHERE student_id = ?"
        )
        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {ks}.enrollments
            (student_id, course_id, id, progress_percentage, enrolled_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?) IF NOT EXISTS
        """)
        self._insert_enrollment_by_id = self.session.prepare(f"""
            INSERT INTO {ks}.enrollments_by_id (id, student_id, course_id)
            VALUES (?, ?, ?)
        """)
        self._get_enrollment_key = self.session.prepare(
            f"SELECT student_id, course_id FROM {ks}.enrollments_by_id WHERE id = ?"
        )
        self._update_enrollment_progress = self.session.prepare(f"""
            UPDATE {ks}.enrollments SET progress_percentage = ?, updated_at = ?
            WHERE student_id = ? AND course_id = ?
        """)

        # Reviews
        self._get_review_key = self.session.prepare(
            f"SELECT course_id, student_id FROM {ks}.reviews_by_id WHERE id = ?"
        )
        self._get_review = self.session.prepare(f"""
            SELECT * FROM {ks}.reviews WHERE course_id = ? AND student_id = ?
        """)
        self._list_reviews = self.session.prepare(
            f"SELECT * FROM {ks}.reviews WHERE course_id = ?"
        )
        self._insert_review = self.session.prepare(f"""
            INSERT INTO {ks}.reviews
            (course_id, student_id, id, rating, comment, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?) IF NOT EXISTS
        """)
        self._insert_review_by_id = self.session.prepare(f"""
            INSERT INTO {ks}.reviews_by_id (id, course_id, student_id)
            VALUES (?, ?, ?)
        """)
        self._update_review = self.session.prepare(f"""
            UPDATE {ks}.reviews SET rating = ?, comment = ?, updated_at = ?
            WHERE course_id = ? AND student_id = ?
        """)
        self._delete_review = self.session.prepare(f"""
            DELETE FROM {ks}.reviews WHERE course_id = ? AND student_id = ?
        """)
        self._delete_review_by_id = self.session.prepare(
            f"DELETE FROM {ks}.reviews_by_id WHERE id = ?"
        )

        # Notifications
        self._insert_notification = self.session.prepare(f"""
            INSERT INTO {ks}.notifications
            (user_id, created_at, notification_id, level, message, code)
            VALUES (?, ?, ?, ?, ?, ?) USING TTL ?
        """)
        self._list_notifications = self.session.prepare(f"""
            SELECT * FROM {ks}.notifications WHERE user_id = ? LIMIT ?
        """)
        self._delete_notifications = self.session.prepare(f"""
            DELETE FROM {ks}.notifications WHERE user_id = ? AND created_at <= ?
        """)

    async def _execute(self, statement: Any, params: list[Any]) -> Any:
        """Run a statement, translating driver failures into StorageError."""
        try:
            return await self.session.aexecute(statement, params)
        except (DriverException, NoHostAvailable) as e:
            logger.error(
                "cassandra_statement_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StorageError(f"Cassandra request failed: {e}") from e

    # ==========================================================================
    # Courses and lessons
    # ==========================================================================

    async def get_course(self, course_id: UUID) -> Course | None:
        result = await self._execute(self._get_course, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def list_courses(self, status: CourseStatus | None = None) -> list[Course]:
        if status is None:
            rows = await self._execute(self._list_courses, [])
        else:
            rows = await self._execute(self._list_courses_by_status, [status.value])
        return [Course.from_row(row) for row in rows]

    async def save_course(self, course: Course) -> None:
        await self._execute(
            self._upsert_course,
            [
                course.id,
                course.title,
                course.description,
                course.price,
                course.level.value,
                course.duration_hours,
                course.status.value,
                course.category_id,
                course.instructor_id,
                course.created_at,
                course.updated_at,
            ],
        )

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        # Junction rows come back clustered by order_index
        rows = await self._execute(self._list_course_lesson_ids, [course_id])
        lessons = []
        for row in rows:
            lesson = await self.get_lesson(row.lesson_id)
            if lesson is not None:
                lessons.append(lesson)
        return lessons

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        result = await self._execute(self._get_lesson, [lesson_id])
        row = result.one()
        return Lesson.from_row(row) if row else None

    async def save_lesson(self, lesson: Lesson) -> None:
        previous = await self.get_lesson(lesson.id)
        if previous is not None and previous.order_index != lesson.order_index:
            await self._execute(
                self._unlink_lesson,
                [previous.course_id, previous.order_index, lesson.id],
            )
        await self._execute(
            self._upsert_lesson,
            [
                lesson.id,
                lesson.course_id,
                lesson.title,
                lesson.description,
                lesson.lesson_type.value,
                lesson.order_index,
                lesson.video_url,
                lesson.pdf_url,
                lesson.content,
                lesson.duration_minutes,
                lesson.created_at,
            ],
        )
        await self._execute(
            self._link_lesson, [lesson.course_id, lesson.order_index, lesson.id]
        )

    # ==========================================================================
    # Quizzes
    # ==========================================================================

    async def get_quiz_for_lesson(self, lesson_id: UUID) -> Quiz | None:
        result = await self._execute(self._get_quiz, [lesson_id])
        row = result.one()
        return Quiz.from_row(row) if row else None

    async def save_quiz(self, quiz: Quiz) -> None:
        await self._execute(
            self._upsert_quiz,
            [
                quiz.lesson_id,
                quiz.id,
                quiz.title,
                quiz.description,
                quiz.passing_score,
                quiz.time_limit_minutes,
            ],
        )

    async def list_questions(self, quiz_id: UUID) -> list[QuizQuestion]:
        rows = await self._execute(self._list_questions, [quiz_id])
        return [QuizQuestion.from_row(row) for row in rows]

    async def save_question(self, question: QuizQuestion) -> None:
        # order_index is in the key; drop any row stored under the old position
        for existing in await self.list_questions(question.quiz_id):
            if (
                existing.id == question.id
                and existing.order_index != question.order_index
            ):
                await self._execute(
                    self._delete_question,
                    [question.quiz_id, existing.order_index, question.id],
                )
        await self._execute(
            self._upsert_question,
            [
                question.quiz_id,
                question.order_index,
                question.id,
                question.question,
                list(question.options),
                question.correct_answer,
                question.explanation,
            ],
        )

    async def delete_question(self, quiz_id: UUID, question_id: UUID) -> None:
        for existing in await self.list_questions(quiz_id):
            if existing.id == question_id:
                await self._execute(
                    self._delete_question,
                    [quiz_id, existing.order_index, question_id],
                )

    async def insert_quiz_attempt(self, attempt: QuizAttempt) -> None:
        await self._execute(
            self._insert_attempt,
            [
                attempt.student_id,
                attempt.quiz_id,
                attempt.attempted_at,
                attempt.id,
                attempt.score,
                {str(k): v for k, v in attempt.answers.items()},
                attempt.passed,
            ],
        )

    async def list_quiz_attempts(
        self, student_id: UUID, quiz_id: UUID
    ) -> list[QuizAttempt]:
        rows = await self._execute(self._list_attempts, [student_id, quiz_id])
        return [QuizAttempt.from_row(row) for row in rows]

    # ==========================================================================
    # Progress
    # ==========================================================================

    async def insert_completion(
        self, student_id: UUID, lesson_id: UUID, completed_at: datetime
    ) -> None:
        result = await self._execute(
            self._insert_completion, [student_id, lesson_id, completed_at]
        )
        if not result.was_applied:
            raise DuplicateRecordError("Lesson already completed")

    async def delete_completion(self, student_id: UUID, lesson_id: UUID) -> None:
        await self._execute(self._delete_completion, [student_id, lesson_id])

    async def list_completions(self, student_id: UUID) -> list[LessonCompletion]:
        rows = await self._execute(self._list_completions, [student_id])
        return [LessonCompletion.from_row(row) for row in rows]

    async def get_enrollment(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        result = await self._execute(self._get_enrollment, [student_id, course_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def list_enrollments(self, student_id: UUID) -> list[Enrollment]:
        rows = await self._execute(self._list_enrollments, [student_id])
        return [Enrollment.from_row(row) for row in rows]

    async def insert_enrollment(self, enrollment: Enrollment) -> None:
        result = await self._execute(
            self._insert_enrollment,
            [
                enrollment.student_id,
                enrollment.course_id,
                enrollment.id,
                enrollment.progress_percentage,
                enrollment.enrolled_at,
                enrollment.updated_at,
            ],
        )
        if not result.was_applied:
            raise DuplicateRecordError("Student already enrolled")

        await self._execute(
            self._insert_enrollment_by_id,
            [enrollment.id, enrollment.student_id, enrollment.course_id],
        )

    async def update_enrollment_progress(
        self, enrollment_id: UUID, percentage: int
    ) -> None:
        result = await self._execute(self._get_enrollment_key, [enrollment_id])
        row = result.one()
        if row is None:
            raise StorageError(f"Enrollment {enrollment_id} not found", "not_found")
        await self._execute(
            self._update_enrollment_progress,
            [percentage, datetime.now(UTC), row.student_id, row.course_id],
        )

    # ==========================================================================
    # Reviews
    # ==========================================================================

    async def get_review(self, review_id: UUID) -> Review | None:
        result = await self._execute(self._get_review_key, [review_id])
        key = result.one()
        if key is None:
            return None
        return await self.get_student_review(key.course_id, key.student_id)

    async def get_student_review(
        self, course_id: UUID, student_id: UUID
    ) -> Review | None:
        result = await self._execute(self._get_review, [course_id, student_id])
        row = result.one()
        return Review.from_row(row) if row else None

    async def list_reviews(self, course_id: UUID) -> list[Review]:
        rows = await self._execute(self._list_reviews, [course_id])
        return [Review.from_row(row) for row in rows]

    async def insert_review(self, review: Review) -> None:
        result = await self._execute(
            self._insert_review,
            [
                review.course_id,
                review.student_id,
                review.id,
                review.rating,
                review.comment,
                review.created_at,
                review.updated_at,
            ],
        )
        if not result.was_applied:
            raise DuplicateRecordError("Course already reviewed")

        await self._execute(
            self._insert_review_by_id,
            [review.id, review.course_id, review.student_id],
        )

    async def update_review(self, review: Review) -> None:
        await self._execute(
            self._update_review,
            [
                review.rating,
                review.comment,
                review.updated_at,
                review.course_id,
                review.student_id,
            ],
        )

    async def delete_review(self, review: Review) -> None:
        await self._execute(
            self._delete_review, [review.course_id, review.student_id]
        )
        await self._execute(self._delete_review_by_id, [review.id])

    # ==========================================================================
    # Notifications
    # ==========================================================================

    async def insert_notification(
        self, notification: Notification, ttl_seconds: int
    ) -> None:
        await self._execute(
            self._insert_notification,
            [
                notification.user_id,
                notification.created_at,
                notification.id,
                notification.level.value,
                notification.message,
                notification.code,
                ttl_seconds,
            ],
        )

    async def list_notifications(
        self, user_id: UUID, limit: int
    ) -> list[Notification]:
        # Clustered newest first
        rows = await self._execute(self._list_notifications, [user_id, limit])
        return [Notification.from_row(row) for row in rows][::-1]

    async def delete_notifications(self, user_id: UUID, up_to: datetime) -> None:
        await self._execute(self._delete_notifications, [user_id, up_to])
