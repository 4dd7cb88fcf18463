"""Tick history for analysis and plotting."""

from collections import deque
from typing import Optional

import pandas as pd

from offgridsim.config import RecorderConfig
from offgridsim.core.environment.simulator import TickResult

_SCALAR_COLUMNS = (
    "minute",
    "day",
    "delta_minutes",
    "irradiance",
    "solar_watts",
    "effective_solar_watts",
    "load_watts",
    "active_loads",
    "battery_flow",
    "weighted_soc",
    "derated_wh",
    "efficiency",
)


class TickRecorder:
    """Keeps the most recent tick results, oldest first."""

    def __init__(self, config: RecorderConfig = RecorderConfig()):
        self.config = config
        self._ticks: deque = deque(maxlen=config.max_ticks)

    def record(self, result: Optional[TickResult]) -> None:
        if result is None or (self._ticks and self._ticks[-1] is result):
            return
        self._ticks.append(result)

    def __len__(self) -> int:
        return len(self._ticks)

    def clear(self) -> None:
        self._ticks.clear()

    def to_dataframe(self) -> pd.DataFrame:
        """One row per tick; per-battery SOC as ``soc:<component id>`` columns."""
        rows = []
        for tick in self._ticks:
            row = {name: getattr(tick, name) for name in _SCALAR_COLUMNS}
            row["trips"] = len(tick.trips)
            row["rules_fired"] = len(tick.rules_fired)
            row["live_connections"] = sum(1 for f in tick.power_flow.values() if f.is_live)
            for component_id, soc in tick.battery_soc.items():
                row[f"soc:{component_id}"] = soc
            rows.append(row)
        df = pd.DataFrame(rows, columns=None if rows else list(_SCALAR_COLUMNS))
        df.index.name = "tick"
        return df
