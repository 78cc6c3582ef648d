# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .channel import EphemeralMessagingChannel
from .events import BadMessageEvent, ChannelEvent, EventListener, MessageEvent, RelayEvent
from .exceptions import UnprivilegedOperationError
from .watcher import DatabaseWatcher

__all__ = (  # noqa: RUF022
    'EphemeralMessagingChannel',
    'DatabaseWatcher',

    'ChannelEvent',
    'EventListener',
    'MessageEvent',
    'RelayEvent',
    'BadMessageEvent',

    'UnprivilegedOperationError',
)
