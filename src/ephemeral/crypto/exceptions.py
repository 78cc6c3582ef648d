# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = 'AuthenticationError', 'InvalidNonceLengthError'


class AuthenticationError(ValueError):
    """Raised when a ciphertext fails authentication (tampered data, wrong key or truncated ciphertext)."""


class InvalidNonceLengthError(ValueError):
    """Raised when the nonce does not have the size required by the cipher."""
