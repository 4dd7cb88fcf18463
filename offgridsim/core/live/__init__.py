from offgridsim.core.live.state import (
    BreakerState,
    ConnectionFlow,
    FlowDirection,
    LiveState,
)

__all__ = [
    "BreakerState",
    "ConnectionFlow",
    "FlowDirection",
    "LiveState",
]
