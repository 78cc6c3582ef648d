# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .exceptions import AuthenticationError, InvalidNonceLengthError
from .keys import KEY_SIZE, SecretKey, generate_secret_key, load_secret_key, save_secret_key, validate_secret_key
from .secretbox import MAC_SIZE, NONCE_SIZE, decrypt, encrypt

__all__ = (  # noqa: RUF022
    'KEY_SIZE',
    'MAC_SIZE',
    'NONCE_SIZE',
    'SecretKey',
    'AuthenticationError',
    'InvalidNonceLengthError',
    'decrypt',
    'encrypt',
    'generate_secret_key',
    'load_secret_key',
    'save_secret_key',
    'validate_secret_key',
)
