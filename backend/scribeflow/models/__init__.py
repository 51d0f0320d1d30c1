# scribeflow/models/__init__.py
"""
Database models module initialization.
Exports all Tortoise ORM models for convenient imports.

Models exported:
- User: Team member account with role
- SegmentSnapshot: Latest persisted field set of an audio segment
"""
from .user import User
from .segment import SegmentSnapshot
