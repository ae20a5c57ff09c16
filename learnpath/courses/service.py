"""Course authoring service layer.

Business logic for:
- Courses: create, update, submit for review
- Admin review: approve / reject pending courses
- Lessons: create and update within a course
- Quizzes: one quiz per quiz lesson, with ordered questions
"""

from datetime import UTC, datetime
from uuid import UUID

import structlog

from learnpath.auth.context import StudentContext, require_context
from learnpath.auth.permissions import UserRole, is_admin
from learnpath.storage import LearningStore

from .models import (
    Course,
    CourseStatus,
    Lesson,
    LessonType,
    Quiz,
    QuizQuestion,
)
from .schemas import (
    CreateCourseRequest,
    CreateLessonRequest,
    QuestionRequest,
    QuizRequest,
    UpdateCourseRequest,
    UpdateLessonRequest,
)


logger = structlog.get_logger(__name__)

MIN_QUESTION_OPTIONS = 2


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class LessonNotFoundError(CourseError):
    """Lesson not found."""

    def __init__(self, message: str = "Lesson not found"):
        super().__init__(message, "lesson_not_found")


class QuizNotFoundError(CourseError):
    """Lesson has no quiz yet."""

    def __init__(self, message: str = "Please create a quiz first"):
        super().__init__(message, "quiz_not_found")


class NotCourseOwnerError(CourseError):
    """Caller neither owns the course nor is an admin."""

    def __init__(self, message: str = "You do not have permission to edit this course"):
        super().__init__(message, "not_course_owner")


class InvalidStatusTransitionError(CourseError):
    """Lifecycle change not allowed from the current status."""

    def __init__(self, message: str = "Invalid course status transition"):
        super().__init__(message, "invalid_status_transition")


class InvalidQuestionError(CourseError):
    """Question options or correct answer are not usable."""

    def __init__(self, message: str = "Invalid question"):
        super().__init__(message, "invalid_question")


class NotAQuizLessonError(CourseError):
    def __init__(self, message: str = "Quizzes can only be attached to quiz lessons"):
        super().__init__(message, "not_quiz_lesson")


# Statuses a course may leave through submission and through admin review
SUBMITTABLE_STATUSES = {CourseStatus.DRAFT, CourseStatus.REJECTED}
REVIEWABLE_STATUSES = {CourseStatus.PENDING}


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Instructor authoring and admin review over the learning store."""

    def __init__(self, store: LearningStore):
        self.store = store

    # ==========================================================================
    # Courses
    # ==========================================================================

    async def create_course(
        self, ctx: StudentContext | None, data: CreateCourseRequest
    ) -> Course:
        """Create a draft course owned by the calling instructor."""
        ctx = require_context(ctx, UserRole.INSTRUCTOR)
        course = Course(
            title=data.title.strip(),
            instructor_id=ctx.user_id,
            description=data.description,
            price=data.price,
            level=data.level,
            duration_hours=data.duration_hours,
            category_id=data.category_id,
        )
        await self.store.save_course(course)
        logger.info("course_created", course_id=str(course.id), instructor_id=str(ctx.user_id))
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        return await self.store.get_course(course_id)

    async def list_courses(self, status: CourseStatus | None = None) -> list[Course]:
        courses = await self.store.list_courses(status)
        return sorted(courses, key=lambda c: c.created_at, reverse=True)

    async def list_instructor_courses(self, ctx: StudentContext | None) -> list[Course]:
        ctx = require_context(ctx, UserRole.INSTRUCTOR)
        courses = await self.list_courses()
        return [c for c in courses if c.instructor_id == ctx.user_id]

    async def update_course(
        self, ctx: StudentContext | None, course_id: UUID, data: UpdateCourseRequest
    ) -> Course:
        """Update course fields (owner or ADMIN only).

        Raises:
            CourseNotFoundError: If course doesn't exist
            NotCourseOwnerError: If caller may not edit it
        """
        course = await self._get_editable_course(ctx, course_id)

        if data.title is not None:
            course.title = data.title.strip()
        if data.description is not None:
            course.description = data.description
        if data.price is not None:
            course.price = data.price
        if data.level is not None:
            course.level = data.level
        if data.duration_hours is not None:
            course.duration_hours = data.duration_hours
        if data.category_id is not None:
            course.category_id = data.category_id

        course.updated_at = datetime.now(UTC)
        await self.store.save_course(course)
        return course

    async def submit_for_review(self, ctx: StudentContext | None, course_id: UUID) -> Course:
        """Move a draft or rejected course to pending review."""
        course = await self._get_editable_course(ctx, course_id)
        if course.status not in SUBMITTABLE_STATUSES:
            raise InvalidStatusTransitionError(
                f"Cannot submit a course with status '{course.status.value}'"
            )
        return await self._set_status(course, CourseStatus.PENDING)

    # ==========================================================================
    # Admin review
    # ==========================================================================

    async def approve_course(self, ctx: StudentContext | None, course_id: UUID) -> Course:
        return await self._review(ctx, course_id, CourseStatus.APPROVED)

    async def reject_course(self, ctx: StudentContext | None, course_id: UUID) -> Course:
        return await self._review(ctx, course_id, CourseStatus.REJECTED)

    async def _review(
        self, ctx: StudentContext | None, course_id: UUID, target: CourseStatus
    ) -> Course:
        ctx = require_context(ctx, UserRole.ADMIN)
        course = await self.store.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        if course.status not in REVIEWABLE_STATUSES:
            raise InvalidStatusTransitionError(
                f"Only pending courses can be reviewed (status '{course.status.value}')"
            )
        logger.info(
            "course_reviewed",
            course_id=str(course_id),
            admin_id=str(ctx.user_id),
            decision=target.value,
        )
        return await self._set_status(course, target)

    async def _set_status(self, course: Course, status: CourseStatus) -> Course:
        previous = course.status
        course.status = status
        course.updated_at = datetime.now(UTC)
        await self.store.save_course(course)
        logger.info(
            "course_status_changed",
            course_id=str(course.id),
            from_status=previous.value,
            to_status=status.value,
        )
        return course

    async def _get_editable_course(
        self, ctx: StudentContext | None, course_id: UUID
    ) -> Course:
        ctx = require_context(ctx, UserRole.INSTRUCTOR)
        course = await self.store.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        if course.instructor_id != ctx.user_id and not is_admin(ctx.role):
            raise NotCourseOwnerError
        return course

    # ==========================================================================
    # Lessons
    # ==========================================================================

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        return await self.store.list_lessons(course_id)

    async def create_lesson(
        self, ctx: StudentContext | None, course_id: UUID, data: CreateLessonRequest
    ) -> Lesson:
        """Add a lesson; without an explicit order it goes last."""
        await self._get_editable_course(ctx, course_id)

        order_index = data.order_index
        if order_index is None:
            order_index = len(await self.store.list_lessons(course_id))

        lesson = Lesson(
            course_id=course_id,
            title=data.title.strip(),
            lesson_type=data.lesson_type,
            order_index=order_index,
            description=data.description,
            video_url=data.video_url,
            pdf_url=data.pdf_url,
            content=data.content,
            duration_minutes=data.duration_minutes,
        )
        await self.store.save_lesson(lesson)
        logger.info(
            "lesson_created",
            lesson_id=str(lesson.id),
            course_id=str(course_id),
            lesson_type=lesson.lesson_type.value,
            order_index=order_index,
        )
        return lesson

    async def update_lesson(
        self, ctx: StudentContext | None, lesson_id: UUID, data: UpdateLessonRequest
    ) -> Lesson:
        lesson = await self.store.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError
        await self._get_editable_course(ctx, lesson.course_id)

        for field_name in (
            "title",
            "lesson_type",
            "order_index",
            "description",
            "video_url",
            "pdf_url",
            "content",
            "duration_minutes",
        ):
            value = getattr(data, field_name)
            if value is not None:
                setattr(lesson, field_name, value)

        await self.store.save_lesson(lesson)
        return lesson

    # ==========================================================================
    # Quizzes
    # ==========================================================================

    async def get_quiz(
        self, ctx: StudentContext | None, lesson_id: UUID
    ) -> tuple[Quiz, list[QuizQuestion]] | None:
        """Quiz with its questions and correct answers, for the course author."""
        await self._get_editable_lesson(ctx, lesson_id)
        quiz = await self.store.get_quiz_for_lesson(lesson_id)
        if quiz is None:
            return None
        return quiz, await self.store.list_questions(quiz.id)

    async def save_quiz(
        self, ctx: StudentContext | None, lesson_id: UUID, data: QuizRequest
    ) -> Quiz:
        """Create the lesson's quiz, or update it if one exists."""
        lesson = await self._get_editable_lesson(ctx, lesson_id)
        if lesson.lesson_type != LessonType.QUIZ:
            raise NotAQuizLessonError

        quiz = await self.store.get_quiz_for_lesson(lesson_id)
        if quiz is None:
            quiz = Quiz(lesson_id=lesson_id, title=data.title.strip())
        quiz.title = data.title.strip()
        quiz.description = data.description
        quiz.passing_score = data.passing_score
        quiz.time_limit_minutes = data.time_limit_minutes

        await self.store.save_quiz(quiz)
        logger.info(
            "quiz_saved",
            quiz_id=str(quiz.id),
            lesson_id=str(lesson_id),
            passing_score=quiz.passing_score,
            time_limit_minutes=quiz.time_limit_minutes,
        )
        return quiz

    async def save_question(
        self,
        ctx: StudentContext | None,
        lesson_id: UUID,
        data: QuestionRequest,
        question_id: UUID | None = None,
    ) -> QuizQuestion:
        """Add a question to the lesson's quiz, or replace ``question_id``.

        Blank options are dropped; at least two must remain and the correct
        answer must be one of them.

        Raises:
            QuizNotFoundError: If the lesson has no quiz yet
            InvalidQuestionError: If options or answer are unusable
        """
        await self._get_editable_lesson(ctx, lesson_id)
        quiz = await self.store.get_quiz_for_lesson(lesson_id)
        if quiz is None:
            raise QuizNotFoundError

        options = [opt for opt in data.options if opt.strip()]
        if len(options) < MIN_QUESTION_OPTIONS:
            raise InvalidQuestionError("Please provide at least 2 options")
        if not data.correct_answer:
            raise InvalidQuestionError("Please select a correct answer")
        if data.correct_answer not in options:
            raise InvalidQuestionError("Correct answer must be one of the options")

        existing = {q.id: q for q in await self.store.list_questions(quiz.id)}
        if question_id is not None and question_id not in existing:
            raise CourseError("Question not found", "question_not_found")

        order_index = data.order_index
        if order_index is None:
            # Updates keep their position, new questions go last
            order_index = (
                existing[question_id].order_index
                if question_id is not None
                else len(existing)
            )

        question = QuizQuestion(
            quiz_id=quiz.id,
            question=data.question.strip(),
            options=options,
            correct_answer=data.correct_answer,
            order_index=order_index,
            explanation=data.explanation,
        )
        if question_id is not None:
            question.id = question_id

        await self.store.save_question(question)
        return question

    async def delete_question(
        self, ctx: StudentContext | None, lesson_id: UUID, question_id: UUID
    ) -> None:
        await self._get_editable_lesson(ctx, lesson_id)
        quiz = await self.store.get_quiz_for_lesson(lesson_id)
        if quiz is None:
            raise QuizNotFoundError
        await self.store.delete_question(quiz.id, question_id)

    async def _get_editable_lesson(
        self, ctx: StudentContext | None, lesson_id: UUID
    ) -> Lesson:
        lesson = await self.store.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError
        await self._get_editable_course(ctx, lesson.course_id)
        return lesson
