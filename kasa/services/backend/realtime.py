"""
Realtime change feed.

The realtime client in the Supabase SDK is async-only, while Streamlit
runs every script rerun synchronously. The feed therefore owns a private
event loop running in a daemon thread; subscribe/unsubscribe hop onto that
loop and block until it answers. Callbacks run on the loop thread, so they
must be quick and thread-safe (the live transaction list only flips a flag).
"""

import asyncio
import threading
from typing import Any, Optional
from uuid import uuid4

import structlog
from supabase import AsyncClient, acreate_client

from kasa.config import SupabaseSettings, get_settings
from kasa.services.backend.interface import (
    ChangeCallback,
    ChangeFeed,
    ConnectionError,
    Subscription,
)


logger = structlog.get_logger(__name__)

# Seconds to wait for the loop thread to answer
LOOP_TIMEOUT = 10


class _ChannelSubscription(Subscription):
    """One realtime channel; removing it is idempotent."""

    def __init__(self, feed: "SupabaseChangeFeed", channel: Any, table: str):
        self._feed = feed
        self._channel = channel
        self._table = table
        self._closed = False
        self._lock = threading.Lock()

    def unsubscribe(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._feed.remove_channel(self._channel)
        except Exception as e:
            # The channel dies with the socket anyway; nothing left to undo
            logger.warning(
                "realtime_unsubscribe_failed",
                table=self._table,
                error=str(e),
            )


class SupabaseChangeFeed(ChangeFeed):
    """
    Subscribes to ``postgres_changes`` events on public tables.

    Args:
        settings: Supabase connection settings
        access_token: Session token, so row-level security applies to
            the events this user receives
    """

    def __init__(
        self,
        settings: Optional[SupabaseSettings] = None,
        access_token: Optional[str] = None,
    ):
        self._settings = settings or get_settings().supabase
        self._access_token = access_token
        self._client: Optional[AsyncClient] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None or self._loop.is_closed():
                self._loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=self._loop.run_forever,
                    name="kasa-realtime",
                    daemon=True,
                )
                self._thread.start()
            return self._loop

    def _run(self, coro):
        future = asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())
        return future.result(LOOP_TIMEOUT)

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await acreate_client(
                self._settings.url,
                self._settings.anon_key,
            )
            if self._access_token:
                await self._client.realtime.set_auth(self._access_token)
        return self._client

    async def _subscribe(self, table: str, callback: ChangeCallback):
        client = await self._get_client()
        channel = client.channel(f"{table}_changes_{uuid4().hex[:8]}")
        channel.on_postgres_changes(
            event="*",
            schema="public",
            table=table,
            callback=callback,
        )
        await channel.subscribe()
        return channel

    async def _remove(self, channel: Any) -> None:
        client = await self._get_client()
        await client.remove_channel(channel)

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        try:
            channel = self._run(self._subscribe(table, callback))
        except Exception as e:
            raise ConnectionError(f"Realtime subscription failed: {e}")
        logger.info("realtime_subscribed", table=table)
        return _ChannelSubscription(self, channel, table)

    def remove_channel(self, channel: Any) -> None:
        if self._client is None:
            # Closed feed; the socket and its channels are already gone
            return
        self._run(self._remove(channel))

    async def _disconnect(self, client: AsyncClient) -> None:
        # Unsubscribes every channel, then closes the socket
        await client.remove_all_channels()

    def close(self) -> None:
        """
        Close the realtime socket and stop the loop thread.

        Open subscriptions stop receiving events. The feed can be used
        again afterwards; a new loop and client are built on demand.
        """
        with self._lock:
            loop, self._loop = self._loop, None
            thread, self._thread = self._thread, None
            client, self._client = self._client, None
        if loop is None or loop.is_closed():
            return

        if client is not None:
            try:
                asyncio.run_coroutine_threadsafe(
                    self._disconnect(client), loop
                ).result(LOOP_TIMEOUT)
            except Exception as e:
                logger.warning("realtime_close_failed", error=str(e))

        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(LOOP_TIMEOUT)
            if thread.is_alive():
                logger.warning("realtime_thread_still_running")
                return
        loop.close()
        logger.info("realtime_closed")
