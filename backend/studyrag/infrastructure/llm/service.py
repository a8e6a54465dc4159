"""Chat completion client for the OpenAI API."""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from openai import AsyncOpenAI

from ...modules.common.exceptions import CompletionFailedError
from ..config.settings import Settings
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass
class ChatMessage:
    """One turn of chat history. ``role`` is ``user`` or ``assistant``."""

    role: str
    content: str


class ChatCompletionService:
    """Thin async wrapper around ``chat.completions.create``.

    The system instruction is always sent first, followed by the chat history.
    Provider errors and empty answers both raise ``CompletionFailedError`` so
    callers have a single failure to handle.

    Args:
        model_name: Chat model identifier
        temperature: Default sampling temperature
        max_tokens: Default completion length cap
        api_key: API key, ignored when ``client`` is given
        client: Pre-built ``AsyncOpenAI`` client, mainly for tests
    """

    def __init__(
        self,
        model_name: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 1000,
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key or None)
        return self._client

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[ChatMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the model's answer to ``messages`` under ``system_prompt``.

        Raises:
            CompletionFailedError: If the call fails or the answer is empty
        """
        payload: List[dict] = [{"role": "system", "content": system_prompt}]
        payload.extend({"role": message.role, "content": message.content} for message in messages)

        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=payload,
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=self.max_tokens if max_tokens is None else max_tokens,
            )
        except Exception as e:
            raise CompletionFailedError(f"Chat completion with {self.model_name} failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise CompletionFailedError(f"{self.model_name} returned an empty answer")

        logger.debug(
            "Chat completion finished",
            extra={"model": self.model_name, "history_length": len(messages), "answer_chars": len(content)},
        )
        return content.strip()


def create_chat_service(settings: Settings) -> ChatCompletionService:
    return ChatCompletionService(
        model_name=settings.LLM_MODEL,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=settings.LLM_MAX_TOKENS,
        api_key=settings.OPENAI_API_KEY,
    )
