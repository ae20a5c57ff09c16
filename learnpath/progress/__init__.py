"""Student progress tracking module.

Provides:
- Lesson completion ledger (manual and player-driven)
- Course progress percentage aggregation
- Course enrollment management
"""

from .models import (
    PROGRESS_TABLES_CQL,
    CompletionLedger,
    CompletionState,
    Enrollment,
    LessonCompletion,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CompletionLedger",
    "CompletionState",
    "Enrollment",
    "LessonCompletion",
]
