"""Tweety HTTP host: serves canary runs and reports over FastAPI."""

__version__ = "0.1.0"
