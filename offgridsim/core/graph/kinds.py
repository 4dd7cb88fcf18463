from enum import Enum


class ComponentKind(str, Enum):
    PANEL = "panel"
    BATTERY = "battery"
    SMART_BATTERY = "smartBattery"
    CONTROLLER = "controller"
    AC_BREAKER = "acBreaker"
    DC_BREAKER = "dcBreaker"
    AC_OUTLET = "acOutlet"
    AC_LOAD = "acLoad"
    COMBINER = "combiner"
    SOLAR_COMBINER = "solarCombiner"
    BREAKER_PANEL = "breakerPanel"
    SPIDER_BOX = "spiderBox"
    DOUBLE_VOLTAGE_HUB = "doubleVoltageHub"
    PRODUCER = "producer"
    CONTAINER = "container"


class Polarity(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    PV_POSITIVE = "pv-positive"
    PV_NEGATIVE = "pv-negative"
    AC = "ac"
    LOAD = "load"
    PARALLEL = "parallel"
    SMART_BATTERY = "smart-battery"
    PIPE = "pipe"


class ServiceVoltage(str, Enum):
    """Voltage offered by an AC supply port."""

    V120 = "120"
    V240 = "240"
    SPLIT = "120/240"

    @classmethod
    def from_volts(cls, volts: float) -> "ServiceVoltage":
        return cls.V240 if volts >= 200 else cls.V120

    @property
    def nominal_volts(self) -> float:
        return 120.0 if self is ServiceVoltage.V120 else 240.0

    def accepts(self, load_volts: float) -> bool:
        """Whether a load rated for ``load_volts`` may be wired to this supply."""
        if self is ServiceVoltage.SPLIT:
            return True
        return self is ServiceVoltage.from_volts(load_volts)


# Kind groups used by the traversal and protection code.
STORAGE_KINDS = frozenset({ComponentKind.BATTERY, ComponentKind.SMART_BATTERY})
CONSUMER_KINDS = frozenset({ComponentKind.AC_LOAD, ComponentKind.PRODUCER})
BREAKER_KINDS = frozenset({ComponentKind.AC_BREAKER, ComponentKind.DC_BREAKER})
DISTRIBUTION_KINDS = frozenset({ComponentKind.BREAKER_PANEL, ComponentKind.SPIDER_BOX})
COMBINER_KINDS = frozenset({ComponentKind.COMBINER, ComponentKind.SOLAR_COMBINER})
PROTECTIVE_KINDS = BREAKER_KINDS | DISTRIBUTION_KINDS

_POSITIVE_SIDE = frozenset({Polarity.POSITIVE, Polarity.PV_POSITIVE})
_NEGATIVE_SIDE = frozenset({Polarity.NEGATIVE, Polarity.PV_NEGATIVE})

COMPATIBILITY: dict[Polarity, frozenset] = {
    Polarity.POSITIVE: _POSITIVE_SIDE | _NEGATIVE_SIDE,
    Polarity.PV_POSITIVE: _POSITIVE_SIDE | _NEGATIVE_SIDE,
    Polarity.NEGATIVE: _POSITIVE_SIDE | _NEGATIVE_SIDE,
    Polarity.PV_NEGATIVE: _POSITIVE_SIDE | _NEGATIVE_SIDE,
    Polarity.AC: frozenset({Polarity.AC, Polarity.LOAD, Polarity.PARALLEL}),
    Polarity.LOAD: frozenset({Polarity.AC, Polarity.LOAD}),
    Polarity.PARALLEL: frozenset({Polarity.AC}),
    Polarity.SMART_BATTERY: frozenset({Polarity.SMART_BATTERY}),
    Polarity.PIPE: frozenset({Polarity.PIPE}),
}


def compatible(a: Polarity, b: Polarity) -> bool:
    """Symmetric polarity check against the wiring matrix."""
    return b in COMPATIBILITY[a] and a in COMPATIBILITY[b]
