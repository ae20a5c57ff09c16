"""Courses, lessons and quizzes (authoring side)."""
