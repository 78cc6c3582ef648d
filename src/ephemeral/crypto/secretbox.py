# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from typing import Final

import nacl.utils
from nacl.exceptions import CryptoError
from nacl.secret import SecretBox

from ephemeral.messages import Envelope

from .exceptions import AuthenticationError, InvalidNonceLengthError
from .keys import SecretKey

__all__ = 'MAC_SIZE', 'NONCE_SIZE', 'decrypt', 'encrypt'


NONCE_SIZE: Final[int] = SecretBox.NONCE_SIZE
MAC_SIZE: Final[int] = SecretBox.MACBYTES


def encrypt(plaintext: bytes, key: SecretKey) -> Envelope:
    """
    Encrypt and authenticate plaintext using XSalsa20-Poly1305.

    Every call uses a fresh random nonce, so the same plaintext never
    produces the same envelope twice. The ciphertext includes the MAC.
    """
    nonce = nacl.utils.random(NONCE_SIZE)
    encrypted = SecretBox(key).encrypt(plaintext, nonce)
    return Envelope(nonce=encrypted.nonce, ciphertext=encrypted.ciphertext)


def decrypt(nonce: bytes, ciphertext: bytes, key: SecretKey) -> bytes:
    """Verify and decrypt ciphertext. Fails closed, never returning partial output."""
    if len(nonce) != NONCE_SIZE:
        raise InvalidNonceLengthError(f'Incorrect nonce length: expected {NONCE_SIZE} bytes, got {len(nonce)}')
    if len(ciphertext) < MAC_SIZE:
        raise AuthenticationError(f'Ciphertext is too short to contain the authentication tag ({len(ciphertext)} < {MAC_SIZE})')
    try:
        return SecretBox(key).decrypt(ciphertext, nonce)
    except CryptoError as exc:
        raise AuthenticationError('Decryption failed: the message could not be authenticated') from exc
