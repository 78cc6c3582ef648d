# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from os import PathLike
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Final

import nacl.utils
from nacl.secret import SecretBox

__all__ = 'KEY_SIZE', 'SecretKey', 'generate_secret_key', 'load_secret_key', 'save_secret_key', 'validate_secret_key'


KEY_SIZE: Final[int] = SecretBox.KEY_SIZE

type SecretKey = bytes


def validate_secret_key(key: bytes | bytearray | memoryview) -> SecretKey:
    if not isinstance(key, bytes | bytearray | memoryview):
        raise TypeError(f'The secret key must be a bytes-like object, not {key.__class__.__qualname__!r}')
    if len(key) != KEY_SIZE:
        raise ValueError(f'The secret key must be exactly {KEY_SIZE} bytes long (got {len(key)} bytes)')
    return bytes(key)


def generate_secret_key() -> SecretKey:
    return nacl.utils.random(KEY_SIZE)


def load_secret_key(path: str | PathLike[str]) -> SecretKey:
    """Load a secret key stored as hex text"""
    key_data = Path(path).expanduser().read_text(encoding='ascii').strip()
    try:
        key = bytes.fromhex(key_data)
    except ValueError as exc:
        raise ValueError(f'The secret key file {str(path)!r} does not contain a hex encoded key') from exc
    return validate_secret_key(key)


def save_secret_key(key: SecretKey, path: str | PathLike[str]) -> None:
    key_data = validate_secret_key(key).hex().encode('ascii') + b'\n'
    path = Path(path).expanduser()
    with NamedTemporaryFile(dir=path.parent, delete=False) as tempfile:
        tempfile.write(key_data)
    Path(tempfile.name).replace(path)
