"""End-to-end tests for the HTTP API over the in-memory store."""

import asyncio
from uuid import uuid4

import pytest
from conftest import auth_headers, seed_course, seed_quiz
from fastapi.testclient import TestClient

from learnpath.auth.context import StudentContext
from learnpath.courses.models import LessonType
from learnpath.storage import InMemoryStore


@pytest.fixture
def headers(student: StudentContext) -> dict[str, str]:
    return auth_headers(student)


def seed(store: InMemoryStore, lesson_types: list[LessonType]):
    return asyncio.run(seed_course(store, lesson_types))


class TestErrorHandling:
    """Tests for the global error format."""

    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/v1/enrollments")

        assert response.status_code == 401
        data = response.json()
        assert data["error"] is True
        assert data["message"] == "Access token required"
        assert data["status_code"] == 401
        assert "request_id" in data
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.get(
            "/v1/enrollments", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"

    def test_validation_error_lists_fields(
        self, client: TestClient, headers: dict[str, str]
    ) -> None:
        response = client.post(
            "/v1/enrollments", json={"course_id": "nope"}, headers=headers
        )

        assert response.status_code == 422
        data = response.json()
        assert data["message"] == "Validation error"
        assert any(d["field"].endswith("course_id") for d in data["details"])

    def test_request_id_header(self, client: TestClient) -> None:
        response = client.get("/health/live")

        assert "X-Request-ID" in response.headers


class TestEnrollmentEndpoints:
    """Tests for /v1/enrollments."""

    def test_enroll_and_list(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, _ = seed(store, [LessonType.TEXT])

        response = client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )
        assert response.status_code == 201
        assert response.json()["progress_percentage"] == 0

        response = client.get("/v1/enrollments", headers=headers)
        assert response.json()["total"] == 1

    def test_enroll_twice_conflicts(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, _ = seed(store, [LessonType.TEXT])
        payload = {"course_id": str(course.id)}
        client.post("/v1/enrollments", json=payload, headers=headers)

        response = client.post("/v1/enrollments", json=payload, headers=headers)

        assert response.status_code == 409

    def test_enroll_unknown_course(
        self, client: TestClient, headers: dict[str, str]
    ) -> None:
        response = client.post(
            "/v1/enrollments", json={"course_id": str(uuid4())}, headers=headers
        )

        assert response.status_code == 404


class TestProgressEndpoints:
    """Tests for /v1/progress."""

    def test_mark_and_unmark_lesson(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, lessons = seed(store, [LessonType.TEXT] * 4)
        client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )
        url = f"/v1/progress/lessons/{lessons[0].id}/complete"

        response = client.post(url, headers=headers)
        assert response.status_code == 200
        assert response.json()["state"] == "completed"
        assert response.json()["progress_percentage"] == 25

        response = client.delete(url, headers=headers)
        assert response.json()["state"] == "not_started"
        assert response.json()["progress_percentage"] == 0

    def test_complete_unknown_lesson(
        self, client: TestClient, headers: dict[str, str]
    ) -> None:
        response = client.post(
            f"/v1/progress/lessons/{uuid4()}/complete", headers=headers
        )

        assert response.status_code == 404

    def test_course_progress_view(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, lessons = seed(store, [LessonType.TEXT, LessonType.VIDEO])
        client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )
        client.post(f"/v1/progress/lessons/{lessons[1].id}/complete", headers=headers)

        response = client.get(f"/v1/progress/courses/{course.id}", headers=headers)

        data = response.json()
        assert data["enrolled"] is True
        assert data["stored_percentage"] == 50
        assert data["computed_percentage"] == 50
        assert data["completed_lesson_ids"] == [str(lessons[1].id)]
        assert data["lessons_total"] == 2

    def test_recompute_without_enrollment(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, _ = seed(store, [LessonType.TEXT])

        response = client.post(
            f"/v1/progress/courses/{course.id}/recompute", headers=headers
        )

        assert response.status_code == 200
        assert response.json()["progress_percentage"] is None

    def test_notifications_are_drained(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, lessons = seed(store, [LessonType.TEXT])
        client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )
        client.post(f"/v1/progress/lessons/{lessons[0].id}/complete", headers=headers)

        response = client.get("/v1/notifications", headers=headers)
        messages = [n["message"] for n in response.json()["items"]]
        assert messages == ["Successfully enrolled!", "Lesson marked as complete"]

        response = client.get("/v1/notifications", headers=headers)
        assert response.json()["total"] == 0


class TestQuizEndpoints:
    """Tests for /v1/quizzes."""

    def test_full_quiz_run(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        """Start, answer, finish; a pass completes the lesson."""
        course, [lesson] = seed(store, [LessonType.QUIZ])
        asyncio.run(seed_quiz(store, lesson.id, 2))
        client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )

        response = client.post(
            f"/v1/quizzes/lessons/{lesson.id}/session", headers=headers
        )
        assert response.status_code == 201
        data = response.json()
        assert data["state"] == "in_progress"
        assert data["question_number"] == 1
        assert data["question_count"] == 2
        assert "correct_answer" not in data["current_question"]
        session_url = f"/v1/quizzes/sessions/{data['session_id']}"

        response = client.post(f"{session_url}/advance", headers=headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Please select an answer"

        response = client.post(
            f"{session_url}/answer", json={"option": "Z"}, headers=headers
        )
        assert response.status_code == 400

        for _ in range(2):
            client.post(f"{session_url}/answer", json={"option": "A"}, headers=headers)
            response = client.post(f"{session_url}/advance", headers=headers)

        data = response.json()
        assert data["state"] == "results"
        assert data["outcome"]["score"] == 100
        assert data["outcome"]["passed"] is True
        assert data["outcome"]["attempt_id"] is not None

        progress = client.get(f"/v1/progress/courses/{course.id}", headers=headers)
        assert progress.json()["stored_percentage"] == 100

        response = client.post(f"{session_url}/retake", headers=headers)
        assert response.json()["state"] == "in_progress"

        response = client.delete(session_url, headers=headers)
        assert response.status_code == 204
        assert client.get(session_url, headers=headers).status_code == 404

    def test_quiz_without_questions_is_unavailable(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        _, [lesson] = seed(store, [LessonType.QUIZ])

        response = client.post(
            f"/v1/quizzes/lessons/{lesson.id}/session", headers=headers
        )

        assert response.json()["state"] == "unavailable"
        assert response.json()["current_question"] is None

    def test_session_of_other_student_is_hidden(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        _, [lesson] = seed(store, [LessonType.QUIZ])
        asyncio.run(seed_quiz(store, lesson.id, 1))
        session_id = client.post(
            f"/v1/quizzes/lessons/{lesson.id}/session", headers=headers
        ).json()["session_id"]

        other = auth_headers(StudentContext(user_id=uuid4()))
        response = client.get(f"/v1/quizzes/sessions/{session_id}", headers=other)

        assert response.status_code == 404

    def test_retake_before_results_conflicts(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        _, [lesson] = seed(store, [LessonType.QUIZ])
        asyncio.run(seed_quiz(store, lesson.id, 1))
        session_id = client.post(
            f"/v1/quizzes/lessons/{lesson.id}/session", headers=headers
        ).json()["session_id"]

        response = client.post(
            f"/v1/quizzes/sessions/{session_id}/retake", headers=headers
        )

        assert response.status_code == 409


class TestPlayerEndpoints:
    """Tests for /v1/player."""

    def test_video_threshold_and_navigation(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, lessons = seed(store, [LessonType.VIDEO, LessonType.TEXT])
        client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )
        base = f"/v1/player/courses/{course.id}"

        data = client.post(base, headers=headers).json()
        assert data["current_lesson"]["id"] == str(lessons[0].id)
        assert data["current_lesson"]["player"] == "video"
        assert data["next_lesson_id"] == str(lessons[1].id)

        data = client.post(
            f"{base}/video-progress", json={"percent": 90}, headers=headers
        ).json()
        assert data["completion_triggered"] is False

        data = client.post(
            f"{base}/video-progress", json={"percent": 91}, headers=headers
        ).json()
        assert data["completion_triggered"] is True
        assert data["lessons"][0]["completed"] is True

        data = client.post(f"{base}/next", headers=headers).json()
        assert data["current_lesson"]["id"] == str(lessons[1].id)
        assert data["next_lesson_id"] is None

        data = client.post(
            f"{base}/manual-completion", json={"completed": True}, headers=headers
        ).json()
        assert data["progress_percentage"] == 100

    def test_player_must_be_opened(
        self, client: TestClient, headers: dict[str, str]
    ) -> None:
        response = client.get(f"/v1/player/courses/{uuid4()}", headers=headers)

        assert response.status_code == 404

    def test_quiz_lesson_rejects_manual_completion(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, _ = seed(store, [LessonType.QUIZ])
        base = f"/v1/player/courses/{course.id}"
        client.post(base, headers=headers)

        response = client.post(
            f"{base}/manual-completion", json={"completed": True}, headers=headers
        )

        assert response.status_code == 400

    def test_passing_player_quiz_advances(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, lessons = seed(store, [LessonType.QUIZ, LessonType.PDF])
        asyncio.run(seed_quiz(store, lessons[0].id, 1))
        base = f"/v1/player/courses/{course.id}"
        client.post(base, headers=headers)

        response = client.post(f"{base}/quiz", headers=headers)
        assert response.status_code == 201
        session_url = f"/v1/quizzes/sessions/{response.json()['session_id']}"
        client.post(f"{session_url}/answer", json={"option": "A"}, headers=headers)
        client.post(f"{session_url}/advance", headers=headers)

        data = client.get(base, headers=headers).json()
        assert data["current_lesson"]["id"] == str(lessons[1].id)
        assert data["current_lesson"]["player"] == "pdf"
        assert data["lessons"][0]["completed"] is True

    def test_select_foreign_lesson(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, _ = seed(store, [LessonType.TEXT])
        _, [foreign] = seed(store, [LessonType.TEXT])
        base = f"/v1/player/courses/{course.id}"
        client.post(base, headers=headers)

        data = client.post(
            f"{base}/select", json={"lesson_id": str(foreign.id)}, headers=headers
        ).json()

        assert data["current_lesson"]["id"] == str(foreign.id)
        assert data["next_lesson_id"] is None


class TestCourseEndpoints:
    """Tests for course authoring and admin review over HTTP."""

    def test_authoring_and_review_flow(
        self,
        client: TestClient,
        instructor: StudentContext,
        admin: StudentContext,
    ) -> None:
        author = auth_headers(instructor)
        reviewer = auth_headers(admin)

        response = client.post(
            "/v1/courses", json={"title": "Drug Interactions"}, headers=author
        )
        assert response.status_code == 201
        course_id = response.json()["id"]
        assert response.json()["status"] == "draft"

        response = client.post(
            f"/v1/courses/{course_id}/lessons",
            json={"title": "Quiz", "lesson_type": "quiz"},
            headers=author,
        )
        lesson_id = response.json()["id"]

        response = client.post(
            f"/v1/courses/lessons/{lesson_id}/quiz/questions",
            json={"question": "?", "options": ["A", "B"], "correct_answer": "A"},
            headers=author,
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Please create a quiz first"

        client.put(
            f"/v1/courses/lessons/{lesson_id}/quiz",
            json={"title": "Quiz", "passing_score": 80},
            headers=author,
        )
        response = client.post(
            f"/v1/courses/lessons/{lesson_id}/quiz/questions",
            json={"question": "?", "options": ["A", "B"], "correct_answer": "A"},
            headers=author,
        )
        assert response.status_code == 201

        quiz = client.get(f"/v1/courses/lessons/{lesson_id}/quiz", headers=author)
        assert quiz.json()["passing_score"] == 80
        assert len(quiz.json()["questions"]) == 1

        assert client.get("/v1/courses").json()["total"] == 0
        client.post(f"/v1/courses/{course_id}/submit", headers=author)
        pending = client.get(
            "/v1/admin/courses", params={"status": "pending"}, headers=reviewer
        )
        assert pending.json()["total"] == 1

        response = client.post(
            f"/v1/admin/courses/{course_id}/approve", headers=reviewer
        )
        assert response.json()["status"] == "approved"
        assert client.get("/v1/courses").json()["total"] == 1

    def test_student_cannot_author(
        self, client: TestClient, headers: dict[str, str]
    ) -> None:
        response = client.post(
            "/v1/courses", json={"title": "Not allowed"}, headers=headers
        )

        assert response.status_code == 403

    def test_instructor_cannot_approve(
        self, client: TestClient, instructor: StudentContext
    ) -> None:
        response = client.post(
            f"/v1/admin/courses/{uuid4()}/approve", headers=auth_headers(instructor)
        )

        assert response.status_code == 403

    def test_invalid_transition_conflicts(
        self,
        client: TestClient,
        instructor: StudentContext,
        admin: StudentContext,
    ) -> None:
        author = auth_headers(instructor)
        course_id = client.post(
            "/v1/courses", json={"title": "Drug Interactions"}, headers=author
        ).json()["id"]

        response = client.post(
            f"/v1/admin/courses/{course_id}/approve", headers=auth_headers(admin)
        )

        assert response.status_code == 409


class TestReviewEndpoints:
    """Tests for /v1/reviews."""

    def test_review_lifecycle(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, _ = seed(store, [LessonType.TEXT])
        url = f"/v1/reviews/courses/{course.id}"
        payload = {"rating": 4, "comment": "Well paced"}

        assert client.post(url, json=payload, headers=headers).status_code == 403

        client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )
        response = client.post(url, json=payload, headers=headers)
        assert response.status_code == 201
        review_id = response.json()["id"]

        assert client.post(url, json=payload, headers=headers).status_code == 409

        response = client.put(
            f"/v1/reviews/{review_id}",
            json={"rating": 5, "comment": "Even better on a second pass"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["updated_at"] is not None

        data = client.get(url).json()
        assert data["total_reviews"] == 1
        assert data["average_rating"] == 5.0
        assert data["rating_distribution"]["5"] == 1

        response = client.delete(f"/v1/reviews/{review_id}", headers=headers)
        assert response.status_code == 204
        assert client.get(url).json()["total_reviews"] == 0

    def test_review_requires_token(
        self, client: TestClient, store: InMemoryStore
    ) -> None:
        course, _ = seed(store, [LessonType.TEXT])

        response = client.post(
            f"/v1/reviews/courses/{course.id}", json={"rating": 3, "comment": "ok"}
        )

        assert response.status_code == 401

    def test_rating_out_of_range(
        self, client: TestClient, store: InMemoryStore, headers: dict[str, str]
    ) -> None:
        course, _ = seed(store, [LessonType.TEXT])

        response = client.post(
            f"/v1/reviews/courses/{course.id}",
            json={"rating": 6, "comment": "ok"},
            headers=headers,
        )

        assert response.status_code == 422

    def test_edit_foreign_review(
        self,
        client: TestClient,
        store: InMemoryStore,
        headers: dict[str, str],
        admin: StudentContext,
    ) -> None:
        course, _ = seed(store, [LessonType.TEXT])
        client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )
        review_id = client.post(
            f"/v1/reviews/courses/{course.id}",
            json={"rating": 2, "comment": "Hard"},
            headers=headers,
        ).json()["id"]

        response = client.delete(
            f"/v1/reviews/{review_id}", headers=auth_headers(admin)
        )

        assert response.status_code == 404
