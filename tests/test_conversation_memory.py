"""Unit tests for ConversationMemory and ConversationRegistry."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import threading
import pytest
from services.conversation_memory import ConversationMemory, ConversationRegistry
from models.conversation import Exchange


class TestConversationMemory:
    """Test suite for ConversationMemory."""

    @pytest.fixture
    def memory(self):
        """Create a memory holding at most 3 exchanges."""
        return ConversationMemory(max_exchanges=3)

    def test_new_memory_is_empty(self, memory):
        """Test that a fresh memory renders no history."""
        assert len(memory) == 0
        assert memory.exchanges() == []
        assert memory.render_history() == ""

    def test_append_returns_exchange(self, memory):
        """Test that append stores and returns a full exchange."""
        exchange = memory.append("Hello", "Hi there!")

        assert isinstance(exchange, Exchange)
        assert exchange.query == "Hello"
        assert exchange.response == "Hi there!"
        assert memory.exchanges() == [exchange]

    def test_render_history_format(self, memory):
        """Test that history is rendered oldest first as Human/AI lines."""
        memory.append("Query 1", "Response 1")
        memory.append("Query 2", "Response 2")

        assert memory.render_history() == (
            "Human: Query 1\nAI: Response 1\n"
            "Human: Query 2\nAI: Response 2"
        )

    @pytest.mark.parametrize("count", [1, 2, 3])
    def test_up_to_capacity_keeps_everything_in_order(self, memory, count):
        """Test that appends within the bound are all kept, in order."""
        for i in range(count):
            memory.append(f"Query {i}", f"Response {i}")

        assert [e.query for e in memory.exchanges()] == [f"Query {i}" for i in range(count)]

    def test_oldest_exchange_evicted(self, memory):
        """Test that the window keeps only the last N exchanges."""
        for i in range(1, 6):
            memory.append(f"Query {i}", f"Response {i}")

        history = memory.render_history()
        assert len(memory) == 3
        assert [e.query for e in memory.exchanges()] == ["Query 3", "Query 4", "Query 5"]
        assert "Query 1" not in history
        assert "Query 2" not in history

    def test_clear_empties_history(self, memory):
        """Test that clear always yields an empty history."""
        memory.append("Query", "Response")
        memory.clear()

        assert memory.render_history() == ""
        assert len(memory) == 0

        memory.append("After", "Clear")
        assert memory.render_history() == "Human: After\nAI: Clear"

    def test_clear_on_empty_memory(self, memory):
        """Test that clearing an empty memory is harmless."""
        memory.clear()
        assert memory.render_history() == ""

    def test_exchanges_returns_snapshot(self, memory):
        """Test that callers cannot mutate the stored sequence."""
        memory.append("Query", "Response")
        snapshot = memory.exchanges()
        snapshot.clear()

        assert len(memory) == 1

    def test_invalid_capacity(self):
        """Test that a non-positive bound is rejected."""
        with pytest.raises(ValueError):
            ConversationMemory(max_exchanges=0)

    def test_concurrent_appends_are_not_corrupted(self):
        """Test that parallel appends each land as one complete exchange."""
        memory = ConversationMemory(max_exchanges=1000)

        def worker(n):
            for i in range(50):
                memory.append(f"q{n}-{i}", f"r{n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        exchanges = memory.exchanges()
        assert len(exchanges) == 400
        for exchange in exchanges:
            assert exchange.query[1:] == exchange.response[1:]


class TestConversationRegistry:
    """Test suite for ConversationRegistry."""

    @pytest.fixture
    def registry(self):
        return ConversationRegistry(max_exchanges=2)

    def test_default_conversation_is_shared(self, registry):
        """Test that requests without an id share one memory."""
        assert registry.get() is registry.get(None)
        assert registry.get() is registry.get(ConversationRegistry.DEFAULT_ID)

    def test_conversations_are_isolated(self, registry):
        """Test that distinct ids get distinct memories."""
        registry.get("a").append("Query A", "Response A")

        assert registry.get("b").render_history() == ""
        assert "Query A" in registry.get("a").render_history()

    def test_memory_uses_registry_bound(self, registry):
        """Test that created memories inherit the configured window."""
        assert registry.get("x").max_exchanges == 2

    def test_clear_default(self, registry):
        """Test that clear without an id resets the shared memory."""
        registry.get().append("Query", "Response")
        registry.get("other").append("Other", "Kept")

        registry.clear()

        assert registry.get().render_history() == ""
        assert registry.get("other").render_history() != ""

    def test_clear_unknown_conversation(self, registry):
        """Test that clearing an unknown id does not create it."""
        registry.clear("missing")
        assert "missing" not in registry
