# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = 'UnprivilegedOperationError',  # noqa: COM818


class UnprivilegedOperationError(PermissionError):
    """Raised when a node without the secret key tries to originate a message."""
