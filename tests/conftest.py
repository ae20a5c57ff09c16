"""Shared fixtures.

Settings are cached on first use, so the environment is set before anything
from ``learnpath`` is imported.
"""

import os


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_REQUESTS", "false")

from collections.abc import Iterator  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from learnpath.auth.context import StudentContext  # noqa: E402
from learnpath.auth.permissions import UserRole  # noqa: E402
from learnpath.auth.security import create_access_token  # noqa: E402
from learnpath.courses.models import (  # noqa: E402
    Course,
    CourseStatus,
    Lesson,
    LessonType,
    Quiz,
    QuizQuestion,
)
from learnpath.main import create_app  # noqa: E402
from learnpath.notifications.service import NotificationCenter  # noqa: E402
from learnpath.progress.service import ProgressTracker  # noqa: E402
from learnpath.quizzes.service import QuizSessionManager  # noqa: E402
from learnpath.storage import InMemoryStore  # noqa: E402


# ==============================================================================
# Seeding helpers
# ==============================================================================


async def seed_course(
    store: InMemoryStore,
    lesson_types: list[LessonType],
    status: CourseStatus = CourseStatus.APPROVED,
) -> tuple[Course, list[Lesson]]:
    """Course with one lesson per type, ordered as given.

    Video and PDF lessons get a media URL.
    """
    course = Course(title="Pharmacology 101", instructor_id=uuid4(), status=status)
    await store.save_course(course)

    lessons = []
    for index, lesson_type in enumerate(lesson_types):
        lesson = Lesson(
            course_id=course.id,
            title=f"Lesson {index + 1}",
            lesson_type=lesson_type,
            order_index=index,
            video_url="https://cdn.example.com/v.m3u8"
            if lesson_type == LessonType.VIDEO
            else None,
            pdf_url="https://cdn.example.com/doc.pdf"
            if lesson_type == LessonType.PDF
            else None,
            content="Body" if lesson_type == LessonType.TEXT else None,
        )
        await store.save_lesson(lesson)
        lessons.append(lesson)
    return course, lessons


async def seed_quiz(
    store: InMemoryStore,
    lesson_id: UUID,
    question_count: int,
    passing_score: int = 70,
    time_limit_minutes: int | None = None,
) -> tuple[Quiz, list[QuizQuestion]]:
    """Quiz whose questions all have options A-D with "A" correct."""
    quiz = Quiz(
        lesson_id=lesson_id,
        title="Check your knowledge",
        passing_score=passing_score,
        time_limit_minutes=time_limit_minutes,
    )
    await store.save_quiz(quiz)

    questions = []
    for index in range(question_count):
        question = QuizQuestion(
            quiz_id=quiz.id,
            question=f"Question {index + 1}?",
            options=["A", "B", "C", "D"],
            correct_answer="A",
            order_index=index,
        )
        await store.save_question(question)
        questions.append(question)
    return quiz, questions


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def notifications(store: InMemoryStore) -> NotificationCenter:
    return NotificationCenter(store)


@pytest.fixture
def tracker(store: InMemoryStore, notifications: NotificationCenter) -> ProgressTracker:
    return ProgressTracker(store, notifications)


@pytest.fixture
def quiz_sessions(
    store: InMemoryStore, notifications: NotificationCenter
) -> QuizSessionManager:
    """Manager whose sessions only count down on explicit ``tick()``."""
    return QuizSessionManager(store, notifications, auto_tick=False)


@pytest.fixture
def student() -> StudentContext:
    return StudentContext(user_id=uuid4(), role=UserRole.STUDENT)


@pytest.fixture
def instructor() -> StudentContext:
    return StudentContext(user_id=uuid4(), role=UserRole.INSTRUCTOR)


@pytest.fixture
def admin() -> StudentContext:
    return StudentContext(user_id=uuid4(), role=UserRole.ADMIN)


@pytest.fixture
def client(store: InMemoryStore) -> Iterator[TestClient]:
    """Test client running the full lifespan over the in-memory store."""
    with TestClient(create_app(store=store)) as test_client:
        yield test_client


def auth_headers(ctx: StudentContext) -> dict[str, str]:
    """Bearer header for ``ctx``."""
    token = create_access_token(ctx.user_id, ctx.role)
    return {"Authorization": f"Bearer {token}"}
