"""Student progress tracking service layer.

Business logic for:
- Course enrollment
- Manual and player-driven lesson completion
- Course progress percentage calculation

Completion writes and the enrollment percentage write are two separate
store calls. ``set_lesson_completion`` runs them back to back; if the second
fails the stored percentage stays behind until the next completion event,
while ``compute_progress`` always reflects the ledger.
"""

from datetime import UTC, datetime
from uuid import UUID

import structlog

from learnpath.auth.context import StudentContext, require_context
from learnpath.notifications.service import NotificationCenter
from learnpath.storage import DuplicateRecordError, LearningStore, StorageError
from learnpath.utils import percent_of

from .models import CompletionLedger, CompletionState, Enrollment


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class AlreadyEnrolledError(ProgressError):
    """Student already enrolled."""

    def __init__(self, message: str = "You are already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class CourseNotFoundError(ProgressError):
    """Course does not exist."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


# ==============================================================================
# Progress Tracker
# ==============================================================================


class ProgressTracker:
    """Per-lesson completion state and the enrollment-level percentage.

    Storage failures never escape: they are published as error notifications,
    logged, and the in-memory ledger keeps its previous value.
    """

    def __init__(
        self,
        store: LearningStore,
        notifications: NotificationCenter,
        ledger: CompletionLedger | None = None,
    ):
        self.store = store
        self.notifications = notifications
        self.ledger = ledger or CompletionLedger()

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(self, ctx: StudentContext | None, course_id: UUID) -> Enrollment:
        """Enroll the student in a course.

        Raises:
            AuthRequiredError: If there is no authenticated student
            CourseNotFoundError: If the course does not exist
            AlreadyEnrolledError: If an enrollment already exists
            StorageError: If the store fails
        """
        ctx = require_context(ctx)

        if await self.store.get_course(course_id) is None:
            raise CourseNotFoundError

        if await self.store.get_enrollment(ctx.user_id, course_id) is not None:
            raise AlreadyEnrolledError

        enrollment = Enrollment(student_id=ctx.user_id, course_id=course_id)
        try:
            await self.store.insert_enrollment(enrollment)
        except DuplicateRecordError as e:
            # Lost the race between the pre-check and the insert
            raise AlreadyEnrolledError from e

        logger.info(
            "student_enrolled",
            student_id=str(ctx.user_id),
            course_id=str(course_id),
        )
        await self.notifications.success(ctx.user_id, "Successfully enrolled!")
        return enrollment

    async def get_enrollment(
        self, ctx: StudentContext | None, course_id: UUID
    ) -> Enrollment | None:
        ctx = require_context(ctx)
        return await self.store.get_enrollment(ctx.user_id, course_id)

    async def list_enrollments(self, ctx: StudentContext | None) -> list[Enrollment]:
        """All enrollments of the student (dashboard view)."""
        ctx = require_context(ctx)
        return await self.store.list_enrollments(ctx.user_id)

    # ==========================================================================
    # Completion Operations
    # ==========================================================================

    async def load_completions(self, ctx: StudentContext | None) -> bool:
        """Refresh the ledger from the student's completion records."""
        ctx = require_context(ctx)
        try:
            completions = await self.store.list_completions(ctx.user_id)
        except StorageError as e:
            await self._report_failure(
                ctx, "load_completions", e, "Failed to load progress"
            )
            return False

        self.ledger.replace_student(ctx.user_id, completions)
        return True

    def is_lesson_completed(self, ctx: StudentContext, lesson_id: UUID) -> bool:
        """Pure lookup against the loaded ledger."""
        return self.ledger.is_completed(ctx.user_id, lesson_id)

    def completion_state(self, ctx: StudentContext, lesson_id: UUID) -> CompletionState:
        return self.ledger.state(ctx.user_id, lesson_id)

    async def mark_lesson_complete(
        self, ctx: StudentContext | None, lesson_id: UUID
    ) -> bool:
        """Record a completion for the lesson if there is none.

        Returns:
            True if the lesson is completed afterwards, False on storage failure
        """
        ctx = require_context(ctx)
        if self.ledger.is_completed(ctx.user_id, lesson_id):
            return True

        now = datetime.now(UTC)
        try:
            await self.store.insert_completion(ctx.user_id, lesson_id, now)
        except DuplicateRecordError:
            # Already stored by an earlier call; the ledger was just stale
            pass
        except StorageError as e:
            await self._report_failure(ctx, "mark_lesson_complete", e)
            return False

        self.ledger.set_completed(ctx.user_id, lesson_id, now)
        logger.info(
            "lesson_marked_complete",
            student_id=str(ctx.user_id),
            lesson_id=str(lesson_id),
        )
        return True

    async def unmark_lesson_complete(
        self, ctx: StudentContext | None, lesson_id: UUID
    ) -> bool:
        """Delete the completion for the lesson; no-op if absent.

        Returns:
            True if the lesson is not completed afterwards, False on storage failure
        """
        ctx = require_context(ctx)
        try:
            await self.store.delete_completion(ctx.user_id, lesson_id)
        except StorageError as e:
            await self._report_failure(ctx, "unmark_lesson_complete", e)
            return False

        self.ledger.set_not_started(ctx.user_id, lesson_id)
        logger.info(
            "lesson_marked_incomplete",
            student_id=str(ctx.user_id),
            lesson_id=str(lesson_id),
        )
        return True

    # ==========================================================================
    # Progress Aggregation
    # ==========================================================================

    async def recompute_progress(
        self, ctx: StudentContext | None, course_id: UUID
    ) -> int | None:
        """Recalculate and store the enrollment's progress percentage.

        Counts the student's completion records whose lesson belongs to the
        course against the course's current lesson count.

        Returns:
            The stored percentage, or None if not enrolled or the store failed
        """
        ctx = require_context(ctx)
        try:
            enrollment = await self.store.get_enrollment(ctx.user_id, course_id)
            if enrollment is None:
                logger.info(
                    "progress_recompute_skipped_not_enrolled",
                    student_id=str(ctx.user_id),
                    course_id=str(course_id),
                )
                return None

            completions = await self.store.list_completions(ctx.user_id)
            lessons = await self.store.list_lessons(course_id)
            course_lesson_ids = {lesson.id for lesson in lessons}
            completed = sum(1 for c in completions if c.lesson_id in course_lesson_ids)
            percentage = percent_of(completed, len(lessons))

            await self.store.update_enrollment_progress(enrollment.id, percentage)
        except StorageError as e:
            await self._report_failure(ctx, "recompute_progress", e)
            return None

        logger.info(
            "progress_recomputed",
            student_id=str(ctx.user_id),
            course_id=str(course_id),
            lessons_completed=completed,
            lessons_total=len(lessons),
            progress_percentage=percentage,
        )
        return percentage

    async def compute_progress(self, ctx: StudentContext | None, course_id: UUID) -> int:
        """Percentage computed on read from the ledger, without writing it.

        Raises:
            StorageError: If the lesson list cannot be loaded
        """
        ctx = require_context(ctx)
        lessons = await self.store.list_lessons(course_id)
        completed = self.ledger.completed_lessons(ctx.user_id)
        return percent_of(
            sum(1 for lesson in lessons if lesson.id in completed), len(lessons)
        )

    async def set_lesson_completion(
        self,
        ctx: StudentContext | None,
        lesson_id: UUID,
        course_id: UUID,
        completed: bool,
    ) -> int | None:
        """Mark or unmark a lesson, then recompute the course percentage.

        Returns:
            The new stored percentage, or None if either step did not succeed
        """
        ctx = require_context(ctx)
        if completed:
            ok = await self.mark_lesson_complete(ctx, lesson_id)
        else:
            ok = await self.unmark_lesson_complete(ctx, lesson_id)
        if not ok:
            return None

        percentage = await self.recompute_progress(ctx, course_id)
        if percentage is not None:
            await self.notifications.success(
                ctx.user_id,
                "Lesson marked as complete" if completed else "Lesson unmarked",
            )
        return percentage

    async def _report_failure(
        self,
        ctx: StudentContext,
        operation: str,
        error: StorageError,
        message: str | None = None,
    ) -> None:
        logger.error(
            "progress_persistence_failed",
            operation=operation,
            student_id=str(ctx.user_id),
            error=error.message,
        )
        await self.notifications.error(
            ctx.user_id, message or error.message, error.code
        )
