# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .exceptions import BrokenResourceError, ClosedResourceError, EndOfStream, WouldBlock
from .stream import EventStream, unlimited

__all__ = 'EventStream', 'unlimited', 'BrokenResourceError', 'ClosedResourceError', 'EndOfStream', 'WouldBlock'  # noqa: RUF022
