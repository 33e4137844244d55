# backend/wellness/tasks/__init__.py
"""Celery tasks for the wellness marketplace."""

from .celery_app import celery_app

__all__ = ["celery_app"]
