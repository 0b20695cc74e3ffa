"""Durable storage for submissions made while offline."""

from .store import DATABASE_NAME, STORE_NAME, SubmissionQueueStore

__all__ = ["DATABASE_NAME", "STORE_NAME", "SubmissionQueueStore"]
