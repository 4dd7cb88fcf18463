"""Kind-specific specifications. One frozen dataclass per component kind."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

from offgridsim.core.graph.kinds import ComponentKind, ServiceVoltage
from offgridsim.core.graph.registry import register_specs

_LOAD_VOLTAGES = (120.0, 240.0)


class ControllerType(str, Enum):
    CHARGE_CONTROLLER = "charge_controller"
    HYBRID_INVERTER = "hybrid_inverter"
    ALL_IN_ONE = "all_in_one"


@register_specs(ComponentKind.PANEL)
@dataclass(frozen=True, slots=True, kw_only=True)
class PanelSpecs:
    """Solar panel nameplate values at the maximum power point."""

    name: str = "Solar Panel"
    wattage: float = 400.0
    vmp: float = 40.0
    voc: float = 48.0
    imp: Optional[float] = None

    def __post_init__(self):
        if self.wattage <= 0:
            raise ValueError("Panel wattage must be positive.")
        if self.vmp <= 0 or self.voc < self.vmp:
            raise ValueError("Panel voltages must satisfy 0 < vmp <= voc.")

    @property
    def rated_current(self) -> float:
        return self.imp if self.imp else self.wattage / self.vmp


@register_specs(ComponentKind.BATTERY)
@dataclass(frozen=True, slots=True, kw_only=True)
class BatterySpecs:
    name: str = "48V 100Ah LiFePO4"
    voltage: float = 51.2
    amp_hours: float = 100.0

    def __post_init__(self):
        if self.voltage <= 0 or self.amp_hours <= 0:
            raise ValueError("Battery voltage and amp hours must be positive.")

    @property
    def capacity_wh(self) -> float:
        return self.voltage * self.amp_hours


@register_specs(ComponentKind.SMART_BATTERY)
@dataclass(frozen=True, slots=True, kw_only=True)
class SmartBatterySpecs:
    name: str = "Smart Battery"
    kwh: float = 3.6
    voltage: float = 48.0

    def __post_init__(self):
        if self.kwh <= 0:
            raise ValueError("Smart battery capacity must be positive.")

    @property
    def capacity_wh(self) -> float:
        return self.kwh * 1000.0


@register_specs(ComponentKind.CONTROLLER)
@dataclass(frozen=True, slots=True, kw_only=True)
class ControllerSpecs:
    """Charge controller, hybrid inverter or all-in-one power station."""

    name: str = "Generic MPPT"
    subtype: ControllerType = ControllerType.HYBRID_INVERTER
    mppt_count: int = 1
    smart_battery_ports: int = 0
    internal_battery_kwh: float = 0.0
    parallel_capable: bool = False
    ac_voltage: ServiceVoltage = ServiceVoltage.V120

    def __post_init__(self):
        if self.mppt_count < 1:
            raise ValueError("A controller needs at least one MPPT input.")
        if self.smart_battery_ports < 0 or self.internal_battery_kwh < 0:
            raise ValueError("Smart battery ports and internal capacity must be non-negative.")
        if self.smart_battery_ports and self.subtype is not ControllerType.ALL_IN_ONE:
            raise ValueError("Only all-in-one controllers expose smart battery ports.")

    @property
    def has_ac_output(self) -> bool:
        return self.subtype is not ControllerType.CHARGE_CONTROLLER

    @property
    def has_battery_terminals(self) -> bool:
        return self.subtype is not ControllerType.ALL_IN_ONE


@register_specs(ComponentKind.AC_BREAKER, ComponentKind.DC_BREAKER)
@dataclass(frozen=True, slots=True, kw_only=True)
class BreakerSpecs:
    name: str = "Breaker"
    rating: float = 20.0
    voltage: float = 120.0

    def __post_init__(self):
        if self.rating <= 0:
            raise ValueError("Breaker rating must be positive.")
        if self.voltage <= 0:
            raise ValueError("Breaker voltage must be positive.")


@register_specs(ComponentKind.AC_OUTLET)
@dataclass(frozen=True, slots=True, kw_only=True)
class OutletSpecs:
    name: str = "AC Outlet"
    voltage: ServiceVoltage = ServiceVoltage.V120


@register_specs(ComponentKind.AC_LOAD)
@dataclass(frozen=True, slots=True, kw_only=True)
class LoadSpecs:
    name: str = "Custom Load"
    watts: float = 100.0
    voltage: float = 120.0

    def __post_init__(self):
        if self.watts < 0:
            raise ValueError("Load watts must be non-negative.")
        if self.voltage not in _LOAD_VOLTAGES:
            raise ValueError("Load voltage must be 120 or 240.")


@register_specs(ComponentKind.COMBINER, ComponentKind.SOLAR_COMBINER)
@dataclass(frozen=True, slots=True, kw_only=True)
class CombinerSpecs:
    name: str = "Combiner"
    inputs: int = 4

    def __post_init__(self):
        if self.inputs < 1:
            raise ValueError("A combiner needs at least one input.")


@dataclass(frozen=True, slots=True, kw_only=True)
class CircuitSpecs:
    rating: float = 20.0
    voltage: float = 120.0

    def __post_init__(self):
        if self.rating <= 0:
            raise ValueError("Circuit rating must be positive.")
        if self.voltage not in _LOAD_VOLTAGES:
            raise ValueError("Circuit voltage must be 120 or 240.")


@register_specs(ComponentKind.BREAKER_PANEL, ComponentKind.SPIDER_BOX)
@dataclass(frozen=True, slots=True, kw_only=True)
class DistributionSpecs:
    """Breaker panel or spider box: a main input feeding breakered circuits."""

    name: str = "Breaker Panel"
    circuits: Tuple[CircuitSpecs, ...] = field(
        default_factory=lambda: tuple(CircuitSpecs() for _ in range(4))
    )
    main_rating: Optional[float] = None

    def __post_init__(self):
        if not self.circuits:
            raise ValueError("A distribution box needs at least one circuit.")
        if self.main_rating is not None and self.main_rating <= 0:
            raise ValueError("Main breaker rating must be positive.")


@register_specs(ComponentKind.DOUBLE_VOLTAGE_HUB)
@dataclass(frozen=True, slots=True, kw_only=True)
class HubSpecs:
    name: str = "Double Voltage Hub"


@dataclass(frozen=True, slots=True, kw_only=True)
class RecipeSpecs:
    output: str
    rate: float = 0.0
    unit: str = ""
    input: Optional[str] = None
    is_storage: bool = False

    def __post_init__(self):
        if self.rate < 0:
            raise ValueError("Recipe rate must be non-negative.")


@register_specs(ComponentKind.PRODUCER)
@dataclass(frozen=True, slots=True, kw_only=True)
class ProducerSpecs:
    """An appliance that turns electricity into a resource (water, ice, ...)."""

    name: str = "Producer"
    watts: float = 500.0
    voltage: float = 120.0
    recipe: RecipeSpecs = field(default_factory=lambda: RecipeSpecs(output="water", rate=1.0))
    tank_size: float = 0.0

    def __post_init__(self):
        if self.watts < 0:
            raise ValueError("Producer watts must be non-negative.")
        if self.voltage not in _LOAD_VOLTAGES:
            raise ValueError("Producer voltage must be 120 or 240.")
        if self.tank_size < 0:
            raise ValueError("Tank size must be non-negative.")


@register_specs(ComponentKind.CONTAINER)
@dataclass(frozen=True, slots=True, kw_only=True)
class ContainerSpecs:
    name: str = "Water Tank"
    resource: str = "water"
    capacity: float = 50.0
    unit: str = "gal"

    def __post_init__(self):
        if self.capacity <= 0:
            raise ValueError("Container capacity must be positive.")


ComponentSpecs = Union[
    PanelSpecs,
    BatterySpecs,
    SmartBatterySpecs,
    ControllerSpecs,
    BreakerSpecs,
    OutletSpecs,
    LoadSpecs,
    CombinerSpecs,
    DistributionSpecs,
    HubSpecs,
    ProducerSpecs,
    ContainerSpecs,
]
