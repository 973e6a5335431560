"""
User management module.

Usage:
    from racetrack.features.users import User, UserRepository, UserService
"""

from .models import User
from .schemas import UserCreate
from .repository import UserRepository
from .service import UserService

__all__ = [
    "User",
    "UserCreate",
    "UserRepository",
    "UserService",
]
