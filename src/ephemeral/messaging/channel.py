# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from collections.abc import Sequence
from typing import Literal, Self

from ephemeral import aio
from ephemeral.aio.stream import un
from ephemeral.configuration import Configuration
from ephemeral.crypto import SecretKey, validate_secret_key
from ephemeral.link.peers import PeerHandle, PeerSource
from ephemeral.messages import EXTENSION_NAME
from ephemeral.messages.payload import Message

from .events import ChannelEvent, EventListener
from .exceptions import UnprivilegedOperationError
from .watcher import DatabaseWatcher

__all__ = 'EphemeralMessagingChannel',  # noqa: COM818


log = logging.getLogger(__name__)


class EphemeralMessagingChannel:
    """
    Exchange encrypted ephemeral messages with the peers of replicated logs.

    A channel created with the secret key is privileged: it can send messages
    and read the messages it receives. Without the key the channel can only
    relay the envelopes it receives to its other peers.

    Events are delivered to the listener given to the constructor, to the
    listeners added with :meth:`add_listener` and to the streams returned by
    :meth:`subscribe`. Every subscriber sees every event.
    """

    def __init__(
        self,
        secret_key: SecretKey | None = None,
        *,
        extension: str = EXTENSION_NAME,
        relay: bool = True,
        relay_events: bool = True,
        listener: EventListener | None = None,
    ) -> None:
        self.secret_key = validate_secret_key(secret_key) if secret_key is not None else None
        self.extension = extension
        self.relay = relay
        self.relay_events = relay_events
        self._watchers: dict[bytes, DatabaseWatcher] = {}
        self._listeners: list[EventListener] = [listener] if listener is not None else []
        self._streams: list[aio.EventStream[ChannelEvent]] = []
        self._closed = False

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}(privileged={self.privileged!r}, extension={self.extension!r}, databases={len(self._watchers)})'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: object, exc_value: object, exc_traceback: object) -> None:
        self.close()

    @classmethod
    def from_configuration(cls, configuration: Configuration, *, listener: EventListener | None = None) -> Self:
        return cls(
            configuration.secret_key(),
            extension=configuration.extension_name,
            relay=configuration.relay,
            relay_events=configuration.relay_events,
            listener=listener,
        )

    @property
    def privileged(self) -> bool:
        return self.secret_key is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def databases(self) -> Sequence[PeerSource]:
        return [watcher.database for watcher in self._watchers.values()]

    def get_watcher(self, database: PeerSource) -> DatabaseWatcher | None:
        return self._watchers.get(bytes(database.key))

    def add_database(self, database: PeerSource) -> None:
        if self._closed:
            raise aio.ClosedResourceError('Cannot add databases to a closed channel')
        key = bytes(database.key)
        if key in self._watchers:
            return
        watcher = self._watchers[key] = DatabaseWatcher(
            database,
            self,
            self.secret_key,
            extension=self.extension,
            relay=self.relay,
            relay_events=self.relay_events,
        )
        watcher.listen()

    def remove_database(self, database: PeerSource) -> None:
        watcher = self._watchers.pop(bytes(database.key), None)
        if watcher is not None:
            watcher.unlisten()

    def has_support(self, database: PeerSource, peer: PeerHandle | bytes) -> bool:
        """Check if the peer supports the ephemeral messaging extension"""
        watcher = self.get_watcher(database)
        return watcher is not None and watcher.has_support(peer)

    def send(self, database: PeerSource, peer: PeerHandle | bytes, message: Message) -> bool:
        """Send a message to a peer"""
        if self.secret_key is None:
            raise UnprivilegedOperationError('Unprivileged nodes cannot send messages')
        watcher = self.get_watcher(database)
        if watcher is None:
            return False
        return watcher.send(peer, message)

    def broadcast(self, database: PeerSource, message: Message) -> int:
        """Send a message to all the peers of a database"""
        if self.secret_key is None:
            raise UnprivilegedOperationError('Unprivileged nodes cannot broadcast messages')
        watcher = self.get_watcher(database)
        if watcher is None:
            return 0
        return watcher.broadcast(message)

    def add_listener(self, listener: EventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def subscribe(self, buffer_size: int | Literal[un.limited] = aio.unlimited) -> aio.EventStream[ChannelEvent]:
        """Return a stream that receives all the events from now on until it is closed"""
        if self._closed:
            raise aio.ClosedResourceError('Cannot subscribe to a closed channel')
        stream = aio.EventStream[ChannelEvent](buffer_size, on_close=self._discard_stream)
        self._streams.append(stream)
        return stream

    def emit(self, event: ChannelEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                log.exception('Event listener %r failed while handling a %r event', listener, event.name)
        for stream in list(self._streams):
            try:
                stream.send_nowait(event)
            except aio.WouldBlock:
                log.warning('Dropped a %r event because the event stream %r is full', event.name, stream)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for watcher in list(self._watchers.values()):
            watcher.unlisten()
        self._watchers.clear()
        for stream in list(self._streams):
            stream.close()
        self._listeners.clear()

    def _discard_stream(self, stream: aio.EventStream[ChannelEvent]) -> None:
        if stream in self._streams:
            self._streams.remove(stream)
