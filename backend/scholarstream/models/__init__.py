"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from scholarstream.models.base import Base
from scholarstream.models.user import User
from scholarstream.models.scholarship import Scholarship
from scholarstream.models.application import Application

# Export all for convenience
__all__ = ["Base", "User", "Scholarship", "Application"]
