"""Pydantic models for remote files and tactical reports."""
