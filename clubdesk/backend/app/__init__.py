"""Application package containing the FastAPI app and the schedule series modules."""

# Import main modules for easier access
from . import db, recurrence, series

__all__ = [
    'db',
    'recurrence',
    'series',
]
