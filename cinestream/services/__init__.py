from .email import EmailService
from .media import MediaService

__all__ = ["EmailService", "MediaService"]
