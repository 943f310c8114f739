"""Common utility functions."""

from .retry import retry_on_db_error

__all__ = [
    "retry_on_db_error",
]
