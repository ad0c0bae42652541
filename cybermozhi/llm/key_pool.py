"""
Key pool rotation for Gemini credentials.

Every model call takes the credential under the rotation cursor and moves the
cursor on, whether the call succeeds or not, so traffic spreads across keys.
Only quota errors move on to the next key within a call; anything else is
raised straight away.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Sequence, Tuple, TypeVar, Union

from pydantic import BaseModel

from cybermozhi.core.config import Settings
from cybermozhi.core.exceptions import AllQuotaExhaustedError, ConfigurationError, QuotaExhaustedError
from cybermozhi.llm.invoker import ModelInvoker, ToolBinding
from cybermozhi.llm.llm_client import ModelGateway
from cybermozhi.utils.logging import mask_key

logger = logging.getLogger("KeyPool")

T = TypeVar("T")


class RotationCursor:
    """Process-wide, monotonically increasing call counter."""

    def __init__(self, start: int = 0) -> None:
        self.position = start

    def take(self) -> int:
        current = self.position
        self.position += 1
        return current

    def index(self, size: int) -> int:
        return self.position % size


class KeyPool:
    def __init__(self, credentials: Sequence[str], cursor: RotationCursor | None = None) -> None:
        self.credentials: Tuple[str, ...] = tuple(credentials)
        self.cursor = cursor or RotationCursor()

    @classmethod
    def from_settings(cls, settings: Settings, cursor: RotationCursor | None = None) -> "KeyPool":
        return cls(settings.api_keys, cursor)

    @property
    def size(self) -> int:
        return len(self.credentials)

    def __len__(self) -> int:
        return self.size


class KeyPoolRotator(ModelInvoker):
    def __init__(self, pool: KeyPool, gateway: ModelGateway) -> None:
        self.pool = pool
        self.gateway = gateway

    async def acquire_and_invoke(self, call: Callable[[str], Awaitable[T]]) -> T:
        """Run `call(credential)` against the pool, moving on only for quota errors."""
        size = self.pool.size
        if size == 0:
            raise ConfigurationError("No API credentials available. Set GEMINI_API_KEYS.")

        # Offsets from one starting point keep the keys tried within a call distinct,
        # even when other calls move the shared cursor in between.
        start = self.pool.cursor.take()
        for attempt in range(size):
            if attempt:
                self.pool.cursor.take()
            index = (start + attempt) % size
            credential = self.pool.credentials[index]
            try:
                return await call(credential)
            except QuotaExhaustedError as e:
                logger.warning(
                    f"Key #{index} ({mask_key(credential)}) is quota-exhausted "
                    f"(attempt {attempt + 1}/{size}): {e.detail}"
                )

        logger.error(f"All {size} API key(s) are quota-exhausted")
        raise AllQuotaExhaustedError(size)

    async def invoke(
        self,
        template_id: str,
        data: Union[BaseModel, Dict[str, Any]],
        tools: Sequence[ToolBinding] = (),
    ) -> BaseModel:
        prepared = self.gateway.prepare(template_id, data)
        return await self.acquire_and_invoke(lambda credential: self.gateway.call(credential, prepared, tools))
