# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import asyncio
import contextlib
from collections.abc import Iterable, Sequence
from functools import partial
from secrets import token_bytes
from typing import Self

from ephemeral import aio
from ephemeral.messages import EXTENSION_NAME

from .peers import ExtensionHandler, PeerCallback, Unsubscribe

__all__ = 'MemoryFeed', 'MemoryLink', 'MemoryPeer', 'replicate'


class MemoryFeed:
    """
    An in-process log with a dynamic peer set.

    It implements the PeerSource protocol and is connected to other feeds
    with :func:`replicate`.
    """

    def __init__(self, key: bytes | None = None) -> None:
        self._key = key if key is not None else token_bytes(32)
        self._peers: list[MemoryPeer] = []
        self._add_callbacks: list[PeerCallback] = []
        self._remove_callbacks: list[PeerCallback] = []

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}(key={self._key.hex()!r})'

    @property
    def key(self) -> bytes:
        return self._key

    @property
    def peers(self) -> Sequence['MemoryPeer']:
        return tuple(self._peers)

    def on_peer_add(self, callback: PeerCallback, /) -> Unsubscribe:
        self._add_callbacks.append(callback)
        return partial(self._unsubscribe, self._add_callbacks, callback)

    def on_peer_remove(self, callback: PeerCallback, /) -> Unsubscribe:
        self._remove_callbacks.append(callback)
        return partial(self._unsubscribe, self._remove_callbacks, callback)

    @staticmethod
    def _unsubscribe(callbacks: list[PeerCallback], callback: PeerCallback) -> None:
        with contextlib.suppress(ValueError):
            callbacks.remove(callback)

    def _add_peer(self, peer: 'MemoryPeer') -> None:
        self._peers.append(peer)
        for callback in list(self._add_callbacks):
            callback(peer)

    def _remove_peer(self, peer: 'MemoryPeer') -> None:
        if peer not in self._peers:
            return
        self._peers.remove(peer)
        for callback in list(self._remove_callbacks):
            callback(peer)


class MemoryPeer:
    """One end of a :class:`MemoryLink`, representing the remote side to the local feed"""

    remote: 'MemoryPeer'

    def __init__(self, feed: MemoryFeed, *, remote_id: bytes, extensions: Iterable[str]) -> None:
        self.feed = feed
        self.extensions = frozenset(extensions)  # the extensions advertised by the local side
        self._remote_id = remote_id
        self._handlers: list[ExtensionHandler] = []
        self._closed = False

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}(remote_id={self._remote_id.hex()!r})'

    @property
    def remote_id(self) -> bytes:
        return self._remote_id

    @property
    def closed(self) -> bool:
        return self._closed

    def remote_supports(self, extension: str, /) -> bool:
        return extension in self.remote.extensions

    def send_extension(self, extension: str, data: bytes, /) -> None:
        if self._closed:
            raise aio.ClosedResourceError
        if extension not in self.extensions:
            raise aio.BrokenResourceError(f'The {extension!r} extension was not negotiated on this link')
        # Deliver on the next loop iteration, like a real transport would, and never re-entrantly.
        asyncio.get_running_loop().call_soon(self.remote._receive_extension, extension, bytes(data))

    def add_extension_handler(self, handler: ExtensionHandler, /) -> None:
        self._handlers.append(handler)

    def remove_extension_handler(self, handler: ExtensionHandler, /) -> None:
        with contextlib.suppress(ValueError):
            self._handlers.remove(handler)

    def _receive_extension(self, extension: str, data: bytes) -> None:
        if self._closed:
            return  # frames still in flight when the link closed are lost
        for handler in list(self._handlers):
            handler(extension, data)

    def _close(self) -> None:
        self._closed = True
        self.feed._remove_peer(self)  # noqa: SLF001


class MemoryLink:
    """A live replication link between two feeds"""

    def __init__(self, a: MemoryPeer, b: MemoryPeer) -> None:
        a.remote = b
        b.remote = a
        self.peers = a, b

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({self.peers[0]!r}, {self.peers[1]!r})'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: object, exc_value: object, exc_traceback: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return all(peer.closed for peer in self.peers)

    def close(self) -> None:
        for peer in self.peers:
            if not peer.closed:
                peer._close()  # noqa: SLF001


def replicate(
    feed_a: MemoryFeed,
    feed_b: MemoryFeed,
    *,
    id_a: bytes | None = None,
    id_b: bytes | None = None,
    extensions_a: Iterable[str] = (EXTENSION_NAME,),
    extensions_b: Iterable[str] = (EXTENSION_NAME,),
) -> MemoryLink:
    """
    Connect two feeds and complete the handshake.

    The ids identify each side of the link and the extensions are the ones
    each side advertises during negotiation. Both feeds get a peer-add
    notification for the new peer before this function returns.
    """
    id_a = id_a if id_a is not None else token_bytes(32)
    id_b = id_b if id_b is not None else token_bytes(32)
    peer_a = MemoryPeer(feed_a, remote_id=id_b, extensions=extensions_a)  # how feed_a sees feed_b
    peer_b = MemoryPeer(feed_b, remote_id=id_a, extensions=extensions_b)  # how feed_b sees feed_a
    link = MemoryLink(peer_a, peer_b)
    feed_a._add_peer(peer_a)  # noqa: SLF001
    feed_b._add_peer(peer_b)  # noqa: SLF001
    return link
