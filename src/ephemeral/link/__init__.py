# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .memory import MemoryFeed, MemoryLink, MemoryPeer, replicate
from .peers import PeerHandle, PeerSource, same_peer

__all__ = 'MemoryFeed', 'MemoryLink', 'MemoryPeer', 'PeerHandle', 'PeerSource', 'replicate', 'same_peer'
