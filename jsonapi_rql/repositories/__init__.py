from .base import BaseRepository
from .resource import ResourceRepository

__all__ = ["BaseRepository", "ResourceRepository"]
