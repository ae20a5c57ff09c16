"""Small shared helpers."""

from learnpath.utils.percent import percent_of


__all__ = ["percent_of"]
