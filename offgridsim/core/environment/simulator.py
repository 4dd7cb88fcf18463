import logging
from dataclasses import dataclass, field
from typing import Optional

from offgridsim.config import MINUTES_PER_DAY
from offgridsim.core.automation.engine import AutomationEngine
from offgridsim.core.automation.rules import Readings
from offgridsim.core.environment.battery import BatteryBank
from offgridsim.core.environment.clock import SimulationClock
from offgridsim.core.environment.solar import SolarModel
from offgridsim.core.flow.resolver import FlowInputs, FlowResolver
from offgridsim.core.graph.circuit import CircuitGraph
from offgridsim.core.live.state import LiveState
from offgridsim.core.protection.manager import ProtectionManager
from offgridsim.core.resources.flow import ResourceSystem
from offgridsim.core.topology.resolver import connected_panels, consumers_on

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TickResult:
    """
    Everything computed during one completed tick.

    Holds the state *after* the tick: clock position, battery SOC and the
    resolved power flow the next tick starts from.
    """

    minute: float
    day: int
    delta_minutes: float
    irradiance: float
    solar_watts: float
    effective_solar_watts: float
    load_watts: float
    active_loads: int
    battery_flow: float
    battery_soc: dict = field(default_factory=dict)
    weighted_soc: float = 0.0
    derated_wh: float = 0.0
    efficiency: float = 100.0
    trips: tuple = ()
    rules_fired: tuple = ()
    production: tuple = ()
    power_flow: dict = field(default_factory=dict)


class EnvironmentSimulator:
    """
    Discrete, caller-driven simulation loop.

    Each tick runs the whole pipeline:
    1.  Environment: time, irradiance, connected solar, switched-on load.
    2.  Battery: float/derate and SOC integration (computed, not committed).
    3.  Power flow, with the overload check on the resolved snapshot.
    4.  Automation rules against the new readings.
    5.  Resource production.
    Clock and battery state are committed only after every stage completed.
    """

    def __init__(
        self,
        graph: CircuitGraph,
        live: LiveState,
        clock: SimulationClock,
        solar: SolarModel,
        bank: BatteryBank,
        flow: FlowResolver,
        protection: ProtectionManager,
        automation: AutomationEngine,
        resources: ResourceSystem,
    ):
        self.graph = graph
        self.live = live
        self.clock = clock
        self.solar = solar
        self.bank = bank
        self.flow = flow
        self.protection = protection
        self.automation = automation
        self.resources = resources
        self.last_result: Optional[TickResult] = None
        self.last_inputs = FlowInputs()

    def solar_watts(self, irradiance: float) -> float:
        """Nameplate output of every connected panel scaled by ``irradiance``."""
        panels = connected_panels(self.graph, self.live)
        return sum(self.graph.component(pid).specs.wattage for pid in panels) * irradiance

    def tick(self, real_seconds: float) -> Optional[TickResult]:
        """
        Advances the simulation by ``real_seconds`` of wall time.

        A paused clock produces no new tick; the previous result stays
        authoritative and is returned.
        """
        if real_seconds < 0:
            raise ValueError("Elapsed time must be non-negative.")
        if not self.clock.playing:
            return self.last_result

        # --- Environment ---
        delta_minutes = real_seconds * self.clock.speed
        days, minute = divmod(self.clock.minute + delta_minutes, MINUTES_PER_DAY)
        irradiance = self.solar.irradiance(minute)
        solar_watts = self.solar_watts(irradiance)
        loads = consumers_on(self.graph, self.live)
        load_watts = sum(c.rated_watts for c in loads)

        # --- Battery ---
        bank_step = self.bank.step(self.graph, solar_watts, load_watts, delta_minutes)

        # --- Power flow and protection ---
        inputs = FlowInputs(
            solar_watts=bank_step.effective_solar_watts,
            load_watts=load_watts,
            battery_flow=bank_step.battery_flow,
            active_loads=len(loads),
        )
        self.last_inputs = inputs
        power_flow, trips = self.flow.resolve(self.graph, self.live, inputs, self.protection)

        # --- Automation ---
        readings = Readings(
            minute=minute,
            day=self.clock.day + int(days),
            battery_percent=bank_step.weighted_soc * 100.0,
            solar_watts=bank_step.effective_solar_watts,
            containers=dict(self.resources.levels),
        )
        fired = self.automation.evaluate(self.graph, self.live, readings)

        # --- Resources ---
        production = self.resources.process_production(self.graph, self.live, delta_minutes / 60.0)

        # --- Commit ---
        self.clock.advance(real_seconds)
        self.bank.commit(bank_step)
        result = TickResult(
            minute=self.clock.minute,
            day=self.clock.day,
            delta_minutes=delta_minutes,
            irradiance=irradiance,
            solar_watts=solar_watts,
            effective_solar_watts=bank_step.effective_solar_watts,
            load_watts=load_watts,
            active_loads=len(loads),
            battery_flow=bank_step.battery_flow,
            battery_soc=dict(self.bank.soc),
            weighted_soc=bank_step.weighted_soc,
            derated_wh=self.bank.derated_wh,
            efficiency=self.bank.efficiency,
            trips=tuple(trips),
            rules_fired=tuple(fired),
            production=tuple(production),
            power_flow=power_flow,
        )
        self.last_result = result
        logger.debug(
            "Tick %s: solar=%.0fW load=%.0fW battery=%.0fW",
            self.clock.formatted,
            result.effective_solar_watts,
            load_watts,
            result.battery_flow,
        )
        return result

    def __repr__(self) -> str:
        return f"<EnvironmentSimulator(clock={self.clock.formatted}, graph={self.graph!r})>"
