from .base import BaseService
from .resource import ResourceService

__all__ = ["BaseService", "ResourceService"]
