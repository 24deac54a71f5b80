"""Unit tests for the Notifier broadcast channel."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import pytest
from services.notifier import Notifier, SPEECH_PROGRESS, SPEECH_STOPPED


def _drain(subscription):
    messages = []
    while not subscription.queue.empty():
        messages.append(subscription.queue.get_nowait())
    return messages


class TestNotifier:
    """Test suite for Notifier."""

    @pytest.mark.asyncio
    async def test_publish_reaches_every_subscriber(self):
        notifier = Notifier()
        first = notifier.subscribe()
        second = notifier.subscribe()

        delivered = await notifier.publish(SPEECH_PROGRESS, {"status": "transcribing"})

        expected = {"event": SPEECH_PROGRESS, "data": {"status": "transcribing"}}
        assert delivered == 2
        assert _drain(first) == [expected]
        assert _drain(second) == [expected]

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self):
        notifier = Notifier()
        assert await notifier.publish(SPEECH_PROGRESS) == 0

    @pytest.mark.asyncio
    async def test_stop_speech_skips_sender(self):
        """Test that a stop request is relayed only to the other clients."""
        notifier = Notifier()
        sender = notifier.subscribe("sender")
        other = notifier.subscribe("other")

        delivered = await notifier.stop_speech("sender")

        assert delivered == 1
        assert _drain(sender) == []
        assert _drain(other) == [{"event": SPEECH_STOPPED, "data": {}}]

    @pytest.mark.asyncio
    async def test_unsubscribed_client_receives_nothing(self):
        notifier = Notifier()
        gone = notifier.subscribe("gone")
        notifier.unsubscribe("gone")
        notifier.unsubscribe("gone")

        await notifier.publish(SPEECH_PROGRESS, {"status": "generating response"})

        assert notifier.subscriber_count == 0
        assert _drain(gone) == []

    @pytest.mark.asyncio
    async def test_full_queue_drops_for_that_client_only(self):
        notifier = Notifier(queue_size=1)
        slow = notifier.subscribe("slow")
        await notifier.publish(SPEECH_PROGRESS, {"status": "transcribing"})
        fast = notifier.subscribe("fast")

        delivered = await notifier.publish(SPEECH_PROGRESS, {"status": "generating response"})

        assert delivered == 1
        assert len(_drain(slow)) == 1
        assert len(_drain(fast)) == 1

    def test_subscribe_assigns_unique_ids(self):
        notifier = Notifier()
        assert notifier.subscribe().client_id != notifier.subscribe().client_id
