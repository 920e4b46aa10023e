"""Data models"""

from .profile import ProfileSnapshot

__all__ = ["ProfileSnapshot"]
