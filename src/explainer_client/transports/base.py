"""
Shared transport types.
"""

from __future__ import annotations

from collections.abc import Callable

from ..types import ChannelMessage

# Transports hand every update or failure to a sink; JobChannel passes its
# inbox's put_nowait so delivery never blocks the transport.
Sink = Callable[[ChannelMessage], None]


__all__ = ["Sink"]
