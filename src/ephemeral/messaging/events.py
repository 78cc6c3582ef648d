# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

from ephemeral.link.peers import PeerHandle, PeerSource
from ephemeral.messages import Envelope

__all__ = 'BadMessageEvent', 'ChannelEvent', 'EventListener', 'MessageEvent', 'RelayEvent'


@dataclass(frozen=True, slots=True, eq=False)
class MessageEvent:
    """A message from a peer was decrypted successfully"""

    name: ClassVar[str] = 'message'

    log: PeerSource
    peer: PeerHandle
    message: Any


@dataclass(frozen=True, slots=True, eq=False)
class RelayEvent:
    """An unprivileged node received an envelope it cannot read and passed it on"""

    name: ClassVar[str] = 'relay'

    log: PeerSource
    peer: PeerHandle
    envelope: Envelope


@dataclass(frozen=True, slots=True, eq=False)
class BadMessageEvent:
    """A frame from a peer could not be decoded, authenticated or parsed"""

    name: ClassVar[str] = 'received-bad-message'

    error: Exception
    log: PeerSource
    peer: PeerHandle
    data: bytes


type ChannelEvent = MessageEvent | RelayEvent | BadMessageEvent

type EventListener = Callable[[ChannelEvent], None]
