from offgridsim.core.flow.resolver import (
    FlowInputs,
    FlowResolver,
    PowerFlow,
)
from offgridsim.core.flow.wiring import WireGauge, gauge_for_amps

__all__ = [
    "FlowInputs",
    "FlowResolver",
    "PowerFlow",
    "WireGauge",
    "gauge_for_amps",
]
