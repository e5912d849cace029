"""MQTT runtime for the remote sync feed."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any, cast

import paho.mqtt.client as mqtt

from ridecache.config import SyncConfig
from ridecache.exceptions import SyncPayloadError
from ridecache.sync.ingest import SyncIngestor
from ridecache.sync.messages import SyncMessage, parse_sync_payload


class RideSyncRuntime:
    """Threaded paho-mqtt client for the current-ride topics of a set of users.

    paho runs its network loop on its own thread; every decoded message is
    handed to *on_message* on the asyncio loop via ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[SyncMessage], None],
        keepalive: int = 120,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_message = on_message
        self._keepalive = keepalive
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._topics: tuple[str, ...] = ()

    @property
    def is_running(self) -> bool:
        return self._client is not None

    @property
    def topics(self) -> tuple[str, ...]:
        return self._topics

    def dispatch_payload(self, topic: str, payload: bytes) -> None:
        """Decode one PUBLISH payload and hand it to the loop; bad payloads are dropped."""
        try:
            message = parse_sync_payload(payload)
        except SyncPayloadError:
            self._logger.warning("Dropping undecodable sync payload on %s", topic, exc_info=True)
            return
        self._logger.debug("Sync %s for user %s on %s", message.event, message.user_id, topic)
        self._loop.call_soon_threadsafe(self._on_message, message)

    def _build_client(self, config: SyncConfig) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if config.username:
            client.username_pw_set(config.username, config.password)
        if config.tls:
            client.tls_set()
        client.on_connect = self._handle_connect
        client.on_message = self._handle_message
        client.on_disconnect = self._handle_disconnect
        return client

    def _handle_connect(self, client: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _props: Any) -> None:
        if reason_code.is_failure:
            self._logger.warning("Sync broker refused connection: %s", reason_code)
            return
        # Subscriptions are renewed on every (re)connect.
        if self._topics:
            client.subscribe([(topic, 1) for topic in self._topics])

    def _handle_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        self.dispatch_payload(msg.topic, msg.payload)

    def _handle_disconnect(
        self, _client: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _props: Any
    ) -> None:
        if self._client is not None:
            self._logger.info("Sync broker connection lost (%s); reconnecting", reason_code)

    def start(self, config: SyncConfig, user_ids: Iterable[str]) -> None:
        """Connect and subscribe to the current-ride topic of every user.

        Blocking; connection errors propagate and leave the runtime stopped.
        """
        self.stop()
        self._topics = tuple(config.topic_for(user_id) for user_id in user_ids)
        client = self._build_client(config)
        try:
            client.connect(config.broker_host, config.broker_port, keepalive=self._keepalive)
        except BaseException:
            self._topics = ()
            raise
        client.loop_start()
        self._client = client
        self._logger.info(
            "Listening for ride sync on %s:%s (%d topic(s))",
            config.broker_host,
            config.broker_port,
            len(self._topics),
        )

    def stop(self) -> None:
        """Disconnect and join the network thread; a no-op when not running."""
        client = self._client
        self._client = None
        self._topics = ()
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()


class RideSyncCoordinator:
    """Owns the MQTT runtime and the ingestor that applies its messages.

    Usage::

        async with RideLocalDatasource(config) as rides:
            sync = RideSyncCoordinator(config.sync, SyncIngestor(rides))
            await sync.start(["user-1"])
            ...
            await sync.stop()
    """

    def __init__(
        self,
        config: SyncConfig,
        ingestor: SyncIngestor,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._ingestor = ingestor
        self._logger = logger or logging.getLogger(__name__)
        self._runtime: RideSyncRuntime | None = None

    @property
    def runtime(self) -> RideSyncRuntime | None:
        return self._runtime

    async def start(self, user_ids: Iterable[str]) -> None:
        """Connect the runtime, then start the ingestor worker.

        A failed broker connection propagates and leaves nothing running.
        """
        if not self._config.enabled:
            self._logger.debug("Sync disabled; not starting MQTT runtime")
            return

        loop = asyncio.get_running_loop()
        runtime = RideSyncRuntime(
            loop=loop,
            on_message=self._ingestor.submit,
            keepalive=self._config.keepalive,
            logger=self._logger,
        )
        previous = self._runtime
        await loop.run_in_executor(None, runtime.start, self._config, list(user_ids))
        # Messages delivered before this point wait in the ingestor queue.
        self._ingestor.start()
        self._runtime = runtime
        if previous is not None:
            await loop.run_in_executor(None, previous.stop)

    async def stop(self) -> None:
        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            try:
                await asyncio.get_running_loop().run_in_executor(None, runtime.stop)
            except Exception:
                self._logger.debug("MQTT runtime stop failed", exc_info=True)
        await self._ingestor.stop()
