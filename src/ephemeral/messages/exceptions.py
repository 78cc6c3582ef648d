# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = 'DecodeError', 'SerializationError'


class DecodeError(ValueError):
    """Raised when an envelope cannot be decoded from its wire representation."""


class SerializationError(ValueError):
    """Raised when a message payload cannot be serialized or is not valid application data."""
