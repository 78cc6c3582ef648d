# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = 'WouldBlock', 'ClosedResourceError', 'BrokenResourceError', 'EndOfStream'


class WouldBlock(Exception):
    """Raised by ``X_nowait`` functions if ``X`` would block."""


class ClosedResourceError(Exception):
    """
    Raised when attempting to use a resource after it has been closed.

    For event streams this means the stream was closed by its owner. For peer
    links it means the link was explicitly closed, generally by calling its
    ``close`` method, after which no more extension frames can be sent on it.

    """


class BrokenResourceError(Exception):
    """
    Raised when using a resource fails due to external causes.

    For example, trying to send an extension frame to a peer whose
    connection was dropped by the remote side.

    This exception's ``__cause__`` attribute will often contain more
    information about the underlying error.

    """


class EndOfStream(Exception):
    """
    Raised when trying to receive from an :class:`aio.EventStream` that
    was closed and has no more events to deliver.

    """
