# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Message payload serialization.

   Before encryption, application messages are serialized as compact JSON
   text encoded with UTF-8. JSON has no binary type, so byte buffers found
   anywhere inside a message are represented by a tagged object:

     {"type": "Buffer", "data": [1, 2, 3, 4]}

   where data lists the byte values in order. On decoding, every object that
   has a "type" member equal to "Buffer" and a "data" member that is a list is
   turned back into bytes, no matter how deeply it is nested.

   This tagging convention is part of the wire contract between peers and is
   identified by BUFFER_TAG_VERSION. It must not change without a version bump.

"""

import json
from collections.abc import Mapping
from typing import Any, Final

from .exceptions import SerializationError

__all__ = 'BUFFER_TAG_VERSION', 'serialize', 'deserialize', 'restore_buffers'  # noqa: RUF022


BUFFER_TAG_VERSION: Final = 1

type Message = Mapping[str, Any] | list[Any] | tuple[Any, ...]


def _encode_value(value: object) -> object:
    match value:
        case bytes() | bytearray() | memoryview():
            return {'type': 'Buffer', 'data': list(bytes(value))}
        case Mapping():
            return dict(value)
        case _:
            raise TypeError(f'Object of type {value.__class__.__qualname__} is not JSON serializable')


def _reject_constant(name: str) -> None:
    raise ValueError(f'Invalid JSON constant: {name}')


def serialize(message: Message) -> bytes:
    """Serialize a message to UTF-8 encoded JSON with tagged byte buffers"""
    if not isinstance(message, Mapping | list | tuple):
        raise SerializationError(f'Message must be a mapping or a sequence, not {message.__class__.__qualname__!r}')
    try:
        return json.dumps(message, default=_encode_value, separators=(',', ':'), ensure_ascii=False, allow_nan=False).encode('utf-8')
    except (TypeError, ValueError, RecursionError) as exc:
        raise SerializationError(f'Message cannot be serialized: {exc}') from exc


def deserialize(data: bytes | bytearray | memoryview) -> Any:
    """Parse a serialized message, restoring the tagged byte buffers"""
    try:
        text = bytes(data).decode('utf-8')
    except UnicodeDecodeError as exc:
        raise SerializationError('Message is not valid UTF-8 text') from exc
    try:
        value = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:
        raise SerializationError(f'Message is not valid JSON: {exc}') from exc
    if not isinstance(value, dict | list):
        raise SerializationError(f'Message must be a JSON object or array, not {value.__class__.__qualname__!r}')
    try:
        return restore_buffers(value)
    except RecursionError as exc:
        raise SerializationError('Message is nested too deeply') from exc


def restore_buffers(value: Any) -> Any:
    """Recursively replace tagged buffer objects with bytes"""
    match value:
        case {'type': 'Buffer', 'data': list() as data}:
            try:
                return bytes(data)
            except (TypeError, ValueError) as exc:
                raise SerializationError(f'Invalid buffer data: {exc}') from exc
        case dict():
            return {key: restore_buffers(item) for key, item in value.items()}
        case list():
            return [restore_buffers(item) for item in value]
        case _:
            return value
