"""Tests for the realtime change feed's loop and socket lifecycle."""

import pytest

from kasa.config import SupabaseSettings
from kasa.services.backend.realtime import SupabaseChangeFeed, _ChannelSubscription


class FakeAsyncClient:
    """Stands in for the SDK's async client on the feed's loop."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.removed_all = 0
        self.removed: list = []

    async def remove_all_channels(self) -> None:
        if self.fail:
            raise RuntimeError("socket already gone")
        self.removed_all += 1

    async def remove_channel(self, channel) -> None:
        self.removed.append(channel)


@pytest.fixture
def feed():
    feed = SupabaseChangeFeed(
        SupabaseSettings(url="https://xyz.supabase.co", anon_key="anon"),
    )
    yield feed
    feed.close()


def start(feed: SupabaseChangeFeed, client: FakeAsyncClient):
    """Start the loop thread with an already connected client."""
    loop = feed._ensure_loop()
    feed._client = client
    return loop, feed._thread


class TestChangeFeedClose:

    def test_close_disconnects_and_stops_thread(self, feed):
        client = FakeAsyncClient()
        loop, thread = start(feed, client)

        feed.close()

        assert client.removed_all == 1
        assert thread.is_alive() is False
        assert loop.is_closed() is True

    def test_close_without_loop_is_a_no_op(self, feed):
        feed.close()
        feed.close()

    def test_close_twice_disconnects_once(self, feed):
        client = FakeAsyncClient()
        start(feed, client)
        feed.close()
        feed.close()
        assert client.removed_all == 1

    def test_failed_disconnect_still_stops_thread(self, feed):
        loop, thread = start(feed, FakeAsyncClient(fail=True))

        feed.close()

        assert thread.is_alive() is False
        assert loop.is_closed() is True

    def test_feed_restarts_after_close(self, feed):
        first_loop, _ = start(feed, FakeAsyncClient())
        feed.close()

        second_loop, thread = start(feed, FakeAsyncClient())
        assert second_loop is not first_loop
        assert thread.is_alive() is True


class TestChannelSubscription:

    def test_unsubscribe_is_idempotent(self, feed):
        client = FakeAsyncClient()
        start(feed, client)
        subscription = _ChannelSubscription(feed, "channel-1", "transactions")

        subscription.unsubscribe()
        subscription.unsubscribe()

        assert client.removed == ["channel-1"]

    def test_unsubscribe_after_close_does_not_reconnect(self, feed):
        start(feed, FakeAsyncClient())
        subscription = _ChannelSubscription(feed, "channel-1", "transactions")
        feed.close()

        subscription.unsubscribe()

        assert feed._loop is None
        assert feed._client is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
