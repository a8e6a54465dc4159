"""Chat completion client."""

from .service import ChatCompletionService, ChatMessage, create_chat_service

__all__ = ["ChatCompletionService", "ChatMessage", "create_chat_service"]
