# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from functools import partial
from typing import Any, Protocol

from ephemeral import aio
from ephemeral.crypto import AuthenticationError, InvalidNonceLengthError, SecretKey, decrypt, encrypt
from ephemeral.link.peers import ExtensionHandler, PeerHandle, PeerSource, Unsubscribe, same_peer
from ephemeral.messages import EXTENSION_NAME, DecodeError, Envelope, SerializationError, deserialize, serialize
from ephemeral.messages.payload import Message

from .events import BadMessageEvent, ChannelEvent, MessageEvent, RelayEvent
from .exceptions import UnprivilegedOperationError

__all__ = 'DatabaseWatcher', 'EventSink', 'open_envelope', 'seal_message'


log = logging.getLogger(__name__)


type PeerRef = PeerHandle | bytes


class EventSink(Protocol):
    def emit(self, event: ChannelEvent, /) -> None: ...


def seal_message(message: Message, key: SecretKey) -> bytes:
    """Serialize, encrypt and encode a message into a wire envelope"""
    return encrypt(serialize(message), key).to_wire()


def open_envelope(envelope: Envelope, key: SecretKey) -> Any:
    """Decrypt an envelope and parse the message it carries"""
    return deserialize(decrypt(envelope.nonce, envelope.ciphertext, key))


class DatabaseWatcher:
    """
    Bind the peers of one log to the ephemeral messaging pipeline.

    While listening, every peer of the log gets a handler for the ephemeral
    messaging extension. Inbound envelopes are decrypted and reported to the
    channel when the node holds the secret key. Without the key the node
    cannot read them, so it passes them on unchanged to its other peers.
    """

    def __init__(
        self,
        database: PeerSource,
        channel: EventSink,
        secret_key: SecretKey | None,
        *,
        extension: str = EXTENSION_NAME,
        relay: bool = True,
        relay_events: bool = True,
    ) -> None:
        self.database = database
        self.channel = channel
        self.secret_key = secret_key
        self.extension = extension
        self.relay = relay
        self.relay_events = relay_events
        self._subscriptions: list[Unsubscribe] = []
        self._handlers: dict[int, tuple[PeerHandle, ExtensionHandler]] = {}
        self._listening = False

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}(key={self.key.hex()!r}, privileged={self.privileged!r}, listening={self._listening!r})'

    @property
    def key(self) -> bytes:
        return bytes(self.database.key)

    @property
    def privileged(self) -> bool:
        return self.secret_key is not None

    @property
    def listening(self) -> bool:
        return self._listening

    def listen(self) -> None:
        if self._listening:
            return
        self._listening = True
        self._subscriptions = [self.database.on_peer_add(self._peer_added), self.database.on_peer_remove(self._peer_removed)]
        for peer in list(self.database.peers):
            self._attach(peer)
        log.debug('Started watching log %s', self.key.hex())

    def unlisten(self) -> None:
        if not self._listening:
            return
        self._listening = False
        subscriptions, self._subscriptions = self._subscriptions, []
        for unsubscribe in subscriptions:
            unsubscribe()
        handlers, self._handlers = self._handlers, {}
        for peer, handler in handlers.values():
            peer.remove_extension_handler(handler)
        log.debug('Stopped watching log %s', self.key.hex())

    def get_peer(self, peer: PeerRef) -> PeerHandle | None:
        return next((candidate for candidate in self.database.peers if same_peer(candidate, peer)), None)

    def has_support(self, peer: PeerRef) -> bool:
        resolved_peer = self.get_peer(peer)
        return resolved_peer is not None and resolved_peer.remote_supports(self.extension)

    def send(self, peer: PeerRef, message: Message | bytes, encrypt_first: bool = True) -> bool:  # noqa: FBT001, FBT002
        """
        Send a message to one peer.

        With encrypt_first the message is sealed into a new envelope, otherwise
        it must be an already encoded envelope. Return True if the frame was
        handed to the transport and False if the peer is unknown, does not
        support the extension or is no longer connected.
        """
        resolved_peer = self.get_peer(peer)
        if resolved_peer is None or not resolved_peer.remote_supports(self.extension):
            log.debug('Not sending to %r: the peer is unknown or does not support %r', peer, self.extension)
            return False
        data = self._seal(message) if encrypt_first else bytes(message)  # type: ignore[arg-type]
        return self._transmit(resolved_peer, data)

    def broadcast(self, message: Message | bytes, encrypt_first: bool = True, *, exclude: PeerRef | None = None) -> int:  # noqa: FBT001, FBT002
        """
        Send a message to all the peers of the log, except for exclude.

        The message is sealed once and the same envelope is sent to every
        peer. Return the number of peers the envelope was handed to.
        """
        data = self._seal(message) if encrypt_first else bytes(message)  # type: ignore[arg-type]
        return sum(self.send(peer, data, encrypt_first=False) for peer in list(self.database.peers) if not same_peer(peer, exclude))

    def _seal(self, message: Message) -> bytes:
        if self.secret_key is None:
            raise UnprivilegedOperationError('Unprivileged nodes cannot encrypt messages')
        return seal_message(message, self.secret_key)

    def _transmit(self, peer: PeerHandle, data: bytes) -> bool:
        try:
            peer.send_extension(self.extension, data)
        except (aio.ClosedResourceError, aio.BrokenResourceError) as exc:
            log.debug('Could not send to %r: %s', peer, str(exc) or 'the link is no longer connected')
            return False
        return True

    def _attach(self, peer: PeerHandle) -> None:
        if id(peer) in self._handlers:
            return
        handler = partial(self._extension_received, peer)
        self._handlers[id(peer)] = peer, handler
        peer.add_extension_handler(handler)
        log.debug('Peer %r joined log %s', peer, self.key.hex())

    def _detach(self, peer: PeerHandle) -> None:
        entry = self._handlers.pop(id(peer), None)
        if entry is not None:
            peer.remove_extension_handler(entry[1])
            log.debug('Peer %r left log %s', peer, self.key.hex())

    def _peer_added(self, peer: PeerHandle) -> None:
        self._attach(peer)

    def _peer_removed(self, peer: PeerHandle) -> None:
        self._detach(peer)

    def _extension_received(self, peer: PeerHandle, extension: str, data: bytes) -> None:
        if extension != self.extension:
            return
        try:
            envelope = Envelope.from_wire(data)
        except DecodeError as exc:
            self._bad_message(exc, peer, data)
            return
        if self.secret_key is None:
            self._relay(peer, envelope, data)
            return
        try:
            message = open_envelope(envelope, self.secret_key)
        except (InvalidNonceLengthError, AuthenticationError, SerializationError) as exc:
            self._bad_message(exc, peer, data)
            return
        self.channel.emit(MessageEvent(log=self.database, peer=peer, message=message))

    def _relay(self, peer: PeerHandle, envelope: Envelope, data: bytes) -> None:
        if self.relay_events:
            self.channel.emit(RelayEvent(log=self.database, peer=peer, envelope=envelope))
        if self.relay:
            count = self.broadcast(data, encrypt_first=False, exclude=peer)
            log.info('Relayed a %d bytes envelope from %r to %d peers of log %s', len(data), peer, count, self.key.hex())

    def _bad_message(self, error: Exception, peer: PeerHandle, data: bytes) -> None:
        log.warning('Received a bad message from %r on log %s: %s', peer, self.key.hex(), error)
        self.channel.emit(BadMessageEvent(error=error, log=self.database, peer=peer, data=bytes(data)))
