"""Database package."""

from .db import Database, DEFAULT_URL
from .models import Base, Record

__all__ = ["Database", "DEFAULT_URL", "Base", "Record"]
