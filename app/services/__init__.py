from .gateway import AIGateway
from .image import ImageService
from .llm import LLMService

__all__ = ["AIGateway", "ImageService", "LLMService"]
