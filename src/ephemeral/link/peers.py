# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

__all__ = 'ExtensionHandler', 'PeerCallback', 'PeerHandle', 'PeerSource', 'Unsubscribe', 'same_peer'


type ExtensionHandler = Callable[[str, bytes], None]
type Unsubscribe = Callable[[], None]


@runtime_checkable
class PeerHandle(Protocol):
    """A connected remote peer, as seen through the replication protocol"""

    @property
    def remote_id(self) -> bytes | None: ...

    def remote_supports(self, extension: str, /) -> bool: ...

    def send_extension(self, extension: str, data: bytes, /) -> None:
        """Raise ClosedResourceError or BrokenResourceError if the frame cannot be sent"""

    def add_extension_handler(self, handler: ExtensionHandler, /) -> None: ...

    def remove_extension_handler(self, handler: ExtensionHandler, /) -> None: ...


type PeerCallback = Callable[[PeerHandle], None]


@runtime_checkable
class PeerSource(Protocol):
    """
    A log (or database) with a dynamic set of replicating peers.

    The key identifies the log. The peer-add and peer-remove subscriptions
    return a callable that cancels the subscription.
    """

    @property
    def key(self) -> bytes: ...

    @property
    def peers(self) -> Sequence[PeerHandle]: ...

    def on_peer_add(self, callback: PeerCallback, /) -> Unsubscribe: ...

    def on_peer_remove(self, callback: PeerCallback, /) -> Unsubscribe: ...


def same_peer(a: PeerHandle | bytes | None, b: PeerHandle | bytes | None) -> bool:
    """Check if two peer references point to the same remote peer"""
    if a is None or b is None:
        return False
    if isinstance(a, PeerHandle) and isinstance(b, PeerHandle) and a is b:
        return True
    a_id = a.remote_id if isinstance(a, PeerHandle) else a
    b_id = b.remote_id if isinstance(b, PeerHandle) else b
    return a_id is not None and b_id is not None and bytes(a_id) == bytes(b_id)
