"""Channel handler capabilities and registry."""
from channels.base import (
    BatchHandler,
    ChannelError,
    ChannelHandler,
    ChannelRegistry,
    FunctionHandler,
    SingleHandler,
)

__all__ = [
    "BatchHandler", "SingleHandler", "ChannelHandler",
    "FunctionHandler", "ChannelRegistry", "ChannelError",
]
