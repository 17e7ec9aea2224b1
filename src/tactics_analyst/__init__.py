"""Tactical video analysis service powered by Gemini."""

__version__ = "0.1.0"
