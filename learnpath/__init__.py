"""learnpath - course progress, lesson player and quiz scoring service."""

__version__ = "0.1.0"
