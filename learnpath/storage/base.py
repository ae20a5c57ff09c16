"""Learning store contract.

Every read and write the progress tracker, quiz session, lesson sequencer,
course authoring, reviews and notifications need. Implementations raise
``StorageError`` for any backend failure and ``DuplicateRecordError`` when a
(student, course) enrollment or review, or a (student, lesson) completion,
already exists.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from learnpath.courses.models import Course, CourseStatus, Lesson, Quiz, QuizQuestion
from learnpath.notifications.models import Notification
from learnpath.progress.models import Enrollment, LessonCompletion
from learnpath.quizzes.models import QuizAttempt
from learnpath.reviews.models import Review


class StorageError(Exception):
    """Base error for storage operations."""

    def __init__(self, message: str, code: str = "storage_error") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class DuplicateRecordError(StorageError):
    """Composite key already present."""

    def __init__(self, message: str = "Record already exists") -> None:
        super().__init__(message, "duplicate_record")


class LearningStore(ABC):
    """Async persistence collaborator."""

    # ==========================================================================
    # Courses and lessons
    # ==========================================================================

    @abstractmethod
    async def get_course(self, course_id: UUID) -> Course | None:
        """Course by id, or None."""

    @abstractmethod
    async def list_courses(self, status: CourseStatus | None = None) -> list[Course]:
        """All courses, optionally filtered by status."""

    @abstractmethod
    async def save_course(self, course: Course) -> None:
        """Insert or replace a course."""

    @abstractmethod
    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        """Lessons of a course ordered by ``order_index`` ascending."""

    @abstractmethod
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        """Lesson by id, or None."""

    @abstractmethod
    async def save_lesson(self, lesson: Lesson) -> None:
        """Insert or replace a lesson."""

    # ==========================================================================
    # Quizzes
    # ==========================================================================

    @abstractmethod
    async def get_quiz_for_lesson(self, lesson_id: UUID) -> Quiz | None:
        """The quiz attached to a lesson, or None."""

    @abstractmethod
    async def save_quiz(self, quiz: Quiz) -> None:
        """Insert or replace the quiz of its lesson."""

    @abstractmethod
    async def list_questions(self, quiz_id: UUID) -> list[QuizQuestion]:
        """Questions of a quiz ordered by ``order_index`` ascending."""

    @abstractmethod
    async def save_question(self, question: QuizQuestion) -> None:
        """Insert or replace a question."""

    @abstractmethod
    async def delete_question(self, quiz_id: UUID, question_id: UUID) -> None:
        """Remove a question; no-op if absent."""

    @abstractmethod
    async def insert_quiz_attempt(self, attempt: QuizAttempt) -> None:
        """Append an attempt record."""

    @abstractmethod
    async def list_quiz_attempts(
        self, student_id: UUID, quiz_id: UUID
    ) -> list[QuizAttempt]:
        """Attempts of a student for a quiz, oldest first."""

    # ==========================================================================
    # Progress
    # ==========================================================================

    @abstractmethod
    async def insert_completion(
        self, student_id: UUID, lesson_id: UUID, completed_at: datetime
    ) -> None:
        """Record a completion.

        Raises:
            DuplicateRecordError: If the pair is already completed
        """

    @abstractmethod
    async def delete_completion(self, student_id: UUID, lesson_id: UUID) -> None:
        """Remove a completion; no-op if absent."""

    @abstractmethod
    async def list_completions(self, student_id: UUID) -> list[LessonCompletion]:
        """Every completion record of a student, across courses."""

    @abstractmethod
    async def get_enrollment(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        """Enrollment for the pair, or None."""

    @abstractmethod
    async def list_enrollments(self, student_id: UUID) -> list[Enrollment]:
        """All enrollments of a student."""

    @abstractmethod
    async def insert_enrollment(self, enrollment: Enrollment) -> None:
        """Create an enrollment.

        Raises:
            DuplicateRecordError: If the student is already enrolled
        """

    @abstractmethod
    async def update_enrollment_progress(
        self, enrollment_id: UUID, percentage: int
    ) -> None:
        """Write the cached progress percentage of an enrollment."""

    # ==========================================================================
    # Notifications
    # ==========================================================================

    @abstractmethod
    async def insert_notification(
        self, notification: Notification, ttl_seconds: int
    ) -> None:
        """Store a notification that expires after ``ttl_seconds``."""

    @abstractmethod
    async def list_notifications(
        self, user_id: UUID, limit: int
    ) -> list[Notification]:
        """The user's newest ``limit`` unexpired notifications, oldest first."""

    @abstractmethod
    async def delete_notifications(self, user_id: UUID, up_to: datetime) -> None:
        """Remove the user's notifications created at or before ``up_to``."""

    # ==========================================================================
    # Reviews
    # ==========================================================================

    @abstractmethod
    async def get_review(self, review_id: UUID) -> Review | None:
        """Review by id, or None."""

    @abstractmethod
    async def get_student_review(
        self, course_id: UUID, student_id: UUID
    ) -> Review | None:
        """The student's review of a course, or None."""

    @abstractmethod
    async def list_reviews(self, course_id: UUID) -> list[Review]:
        """Reviews of a course, in no particular order."""

    @abstractmethod
    async def insert_review(self, review: Review) -> None:
        """Create a review.

        Raises:
            DuplicateRecordError: If the student already reviewed the course
        """

    @abstractmethod
    async def update_review(self, review: Review) -> None:
        """Write rating, comment and ``updated_at`` of an existing review."""

    @abstractmethod
    async def delete_review(self, review: Review) -> None:
        """Remove a review; no-op if absent."""
