"""Reading-slot rules shared by the book service."""

from .slots import MAX_ACTIVE_BOOKS, BookNotFoundError, ReadOutcome, SlotState, apply_read

__all__ = ["MAX_ACTIVE_BOOKS", "BookNotFoundError", "ReadOutcome", "SlotState", "apply_read"]
