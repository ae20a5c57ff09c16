"""Course reviews module.

Provides:
- One star rating and comment per enrolled student and course
- Per-course average rating and star distribution
"""

from .models import MAX_RATING, MIN_RATING, REVIEWS_TABLES_CQL, Review


__all__ = ["MAX_RATING", "MIN_RATING", "REVIEWS_TABLES_CQL", "Review"]
