from gitivity.db.models.base import Base
from gitivity.db.models.profile import GitivityProfile

__all__ = [
    "Base",
    "GitivityProfile",
]
