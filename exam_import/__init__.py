"""Exam-paper PDF question import pipeline."""

__version__ = "0.3.0"
