"""Bounded conversation memory for multi-turn context."""
import logging
import threading
from collections import deque
from typing import Deque, Dict, List, Optional

from models.conversation import Exchange

logger = logging.getLogger(__name__)


class ConversationMemory:
    """
    Sliding window of the most recent exchanges in one conversation.

    Appends and clears are serialized by a lock so concurrent turns can
    never leave a half-written exchange or a window larger than the bound.
    Turns themselves are not serialized: two turns finishing together may
    append in either order.
    """

    def __init__(self, max_exchanges: int = 5):
        """
        Initialize an empty memory.

        Args:
            max_exchanges: Number of most recent exchanges to retain
        """
        if max_exchanges < 1:
            raise ValueError("max_exchanges must be at least 1")

        self.max_exchanges = max_exchanges
        self._exchanges: Deque[Exchange] = deque(maxlen=max_exchanges)
        self._lock = threading.Lock()

    def append(self, query: str, response: str) -> Exchange:
        """
        Add one exchange, evicting the oldest when the window is full.

        Args:
            query: Human input (typed text or transcript)
            response: Assistant output

        Returns:
            The stored Exchange
        """
        exchange = Exchange(query=query, response=response)
        with self._lock:
            evicted = len(self._exchanges) == self.max_exchanges
            self._exchanges.append(exchange)
            size = len(self._exchanges)

        if evicted:
            logger.debug(f"Evicted oldest exchange, memory holds {size}")
        return exchange

    def exchanges(self) -> List[Exchange]:
        """Return a snapshot of stored exchanges, oldest first."""
        with self._lock:
            return list(self._exchanges)

    def render_history(self) -> str:
        """
        Get formatted conversation history for prompt injection.

        Returns:
            "Human: ..." / "AI: ..." lines, oldest first; empty string
            when nothing is stored
        """
        lines = []
        for exchange in self.exchanges():
            lines.append(f"Human: {exchange.query}")
            lines.append(f"AI: {exchange.response}")
        return "\n".join(lines)

    def clear(self) -> None:
        """Forget every stored exchange."""
        with self._lock:
            self._exchanges.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._exchanges)


class ConversationRegistry:
    """
    Owns ConversationMemory instances keyed by conversation id.

    Requests that carry no conversation id share the default conversation,
    so every client of a single deployment sees the same history.
    """

    DEFAULT_ID = "default"

    def __init__(self, max_exchanges: int = 5):
        self.max_exchanges = max_exchanges
        self._conversations: Dict[str, ConversationMemory] = {}
        self._lock = threading.Lock()
        logger.info(f"ConversationRegistry initialized (window={max_exchanges} exchanges)")

    def get(self, conversation_id: Optional[str] = None) -> ConversationMemory:
        """Get the memory for `conversation_id`, creating it on first use."""
        key = conversation_id or self.DEFAULT_ID
        with self._lock:
            memory = self._conversations.get(key)
            if memory is None:
                memory = ConversationMemory(self.max_exchanges)
                self._conversations[key] = memory
                logger.info(f"Created conversation memory: {key}")
            return memory

    def clear(self, conversation_id: Optional[str] = None) -> None:
        """Clear one conversation. Unknown ids are a no-op."""
        key = conversation_id or self.DEFAULT_ID
        with self._lock:
            memory = self._conversations.get(key)
        if memory is not None:
            memory.clear()
        logger.info(f"Conversation memory cleared: {key}")

    def __contains__(self, conversation_id: str) -> bool:
        with self._lock:
            return conversation_id in self._conversations
