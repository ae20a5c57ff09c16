"""Pydantic schemas for quiz sessions."""

from uuid import UUID

from pydantic import BaseModel, Field

from .models import QuizOutcome, QuizSessionState
from .session import QuizSession


class AnswerRequest(BaseModel):
    """Select an option for the current question."""

    option: str = Field(..., description="Option text, matched exactly")


class QuestionView(BaseModel):
    """Question as shown while answering (no correct answer)."""

    id: UUID
    question: str
    options: list[str]


class QuestionResultResponse(BaseModel):
    question_id: UUID
    question: str
    student_answer: str | None = None
    correct_answer: str
    is_correct: bool
    explanation: str | None = None


class QuizOutcomeResponse(BaseModel):
    """Scored run."""

    quiz_id: UUID
    score: int = Field(ge=0, le=100)
    passed: bool
    passing_score: int
    correct_count: int
    question_count: int
    timed_out: bool
    attempt_id: UUID | None = Field(
        None, description="None when the attempt could not be saved"
    )
    results: list[QuestionResultResponse]

    @classmethod
    def from_outcome(cls, outcome: QuizOutcome) -> "QuizOutcomeResponse":
        return cls(
            quiz_id=outcome.quiz_id,
            score=outcome.score,
            passed=outcome.passed,
            passing_score=outcome.passing_score,
            correct_count=outcome.correct_count,
            question_count=outcome.question_count,
            timed_out=outcome.timed_out,
            attempt_id=outcome.attempt_id,
            results=[
                QuestionResultResponse(
                    question_id=r.question_id,
                    question=r.question,
                    student_answer=r.student_answer,
                    correct_answer=r.correct_answer,
                    is_correct=r.is_correct,
                    explanation=r.explanation,
                )
                for r in outcome.results
            ],
        )


class QuizSessionResponse(BaseModel):
    """Snapshot of a quiz session."""

    session_id: UUID
    lesson_id: UUID
    state: QuizSessionState
    quiz_title: str | None = None
    question_number: int | None = Field(None, description="1-based")
    question_count: int = 0
    current_question: QuestionView | None = None
    pending_selection: str | None = None
    time_remaining_seconds: int | None = None
    outcome: QuizOutcomeResponse | None = None

    @classmethod
    def from_session(cls, session: QuizSession) -> "QuizSessionResponse":
        """Create response from a live session."""
        question = session.current_question
        return cls(
            session_id=session.id,
            lesson_id=session.lesson_id,
            state=session.state,
            quiz_title=session.quiz.title if session.quiz else None,
            question_number=session.current_index + 1 if question else None,
            question_count=session.question_count,
            current_question=(
                QuestionView(
                    id=question.id,
                    question=question.question,
                    options=list(question.options),
                )
                if question
                else None
            ),
            pending_selection=session.pending_selection,
            time_remaining_seconds=session.time_remaining,
            outcome=(
                QuizOutcomeResponse.from_outcome(session.outcome)
                if session.outcome and session.state == QuizSessionState.RESULTS
                else None
            ),
        )
