import logging
from dataclasses import dataclass, field

import numpy as np

from offgridsim.config import BatteryBankConfig
from offgridsim.core.graph.circuit import CircuitGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BankStep:
    """Outcome of integrating the bank over one tick, not yet committed."""

    soc: dict = field(default_factory=dict)
    weighted_soc: float = 0.0
    raw_solar_watts: float = 0.0
    effective_solar_watts: float = 0.0
    load_watts: float = 0.0
    battery_flow: float = 0.0  # average watts into storage, negative when discharging
    possible_wh: float = 0.0
    actual_wh: float = 0.0
    derated_wh: float = 0.0


class BatteryBank:
    """
    State of charge of every storage device in the graph.

    Batteries, smart batteries and all-in-one internal cells share one bus:
    net energy is split in proportion to capacity, so every device moves by
    the same SOC fraction before clamping. When the capacity-weighted SOC is
    at or above the float threshold, solar is curtailed to the load and the
    surplus is counted as derated energy.
    """

    def __init__(self, config: BatteryBankConfig = BatteryBankConfig()):
        self.config = config
        self.soc: dict[str, float] = {}
        self.possible_wh = 0.0
        self.actual_wh = 0.0
        self.derated_wh = 0.0

    def capacities(self, graph: CircuitGraph) -> dict[str, float]:
        return {c.id: c.capacity_wh for c in graph.components.values() if c.capacity_wh > 0}

    def sync(self, graph: CircuitGraph) -> dict[str, float]:
        """Tracks new storage at the initial SOC and forgets removed storage."""
        capacities = self.capacities(graph)
        for component_id in capacities:
            if component_id not in self.soc:
                logger.debug("Tracking storage %s at SOC %.2f", component_id, self.config.initial_soc)
                self.soc[component_id] = self.config.initial_soc
        for component_id in set(self.soc) - set(capacities):
            del self.soc[component_id]
        return capacities

    def weighted_soc(self, capacities: dict[str, float]) -> float:
        total = sum(capacities.values())
        if total <= 0:
            return 0.0
        return sum(self.soc.get(cid, self.config.initial_soc) * cap for cid, cap in capacities.items()) / total

    def step(self, graph: CircuitGraph, solar_watts: float, load_watts: float, minutes: float) -> BankStep:
        """Integrates ``minutes`` of solar and load into the bank without committing."""
        capacities = self.sync(graph)
        hours = minutes / 60.0
        weighted = self.weighted_soc(capacities)

        effective = solar_watts
        derated_wh = 0.0
        if capacities and weighted >= self.config.float_threshold and solar_watts > load_watts:
            effective = load_watts
            derated_wh = (solar_watts - load_watts) * hours

        ids = list(capacities)
        caps = np.array([capacities[cid] for cid in ids], dtype=float)
        socs = np.array([self.soc[cid] for cid in ids], dtype=float)
        new_socs = socs
        stored_wh = 0.0
        if ids and hours > 0:
            net_wh = (effective - load_watts) * hours
            new_socs = np.clip(socs + net_wh / caps.sum(), self.config.min_soc, self.config.max_soc)
            stored_wh = float(np.sum((new_socs - socs) * caps))

        new_soc = {cid: float(value) for cid, value in zip(ids, new_socs)}
        return BankStep(
            soc=new_soc,
            weighted_soc=float(np.dot(new_socs, caps) / caps.sum()) if ids else 0.0,
            raw_solar_watts=solar_watts,
            effective_solar_watts=effective,
            load_watts=load_watts,
            battery_flow=stored_wh / hours if hours > 0 else 0.0,
            possible_wh=solar_watts * hours,
            actual_wh=effective * hours,
            derated_wh=derated_wh,
        )

    def commit(self, step: BankStep) -> None:
        self.soc.update(step.soc)
        self.possible_wh += step.possible_wh
        self.actual_wh += step.actual_wh
        self.derated_wh += step.derated_wh

    def set_soc(self, component_id: str, soc: float) -> None:
        self.soc[component_id] = float(np.clip(soc, self.config.min_soc, self.config.max_soc))

    @property
    def efficiency(self) -> float:
        """Captured versus available solar energy, in percent."""
        if self.possible_wh <= 0:
            return 100.0
        return 100.0 * self.actual_wh / self.possible_wh

    def reset_counters(self) -> None:
        self.possible_wh = 0.0
        self.actual_wh = 0.0
        self.derated_wh = 0.0

    def __repr__(self) -> str:
        return f"<BatteryBank(devices={len(self.soc)}, efficiency={self.efficiency:.1f}%)>"
