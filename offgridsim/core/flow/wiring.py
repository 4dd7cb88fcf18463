from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class WireGauge:
    gauge: str
    amps: float

    @property
    def name(self) -> str:
        return f"{self.gauge} AWG"


# Ampacity table, smallest conductor first.
WIRE_GAUGES = (
    WireGauge("18", 14),
    WireGauge("16", 18),
    WireGauge("14", 20),
    WireGauge("12", 25),
    WireGauge("10", 30),
    WireGauge("8", 40),
    WireGauge("6", 55),
    WireGauge("4", 70),
    WireGauge("2", 95),
    WireGauge("1/0", 125),
    WireGauge("2/0", 145),
    WireGauge("3/0", 165),
    WireGauge("4/0", 195),
)
DEFAULT_GAUGE = WIRE_GAUGES[4]
SAFETY_MARGIN_AMPS = 5.0


def gauge_for_amps(amps: float) -> WireGauge:
    """Smallest gauge carrying ``amps`` plus the safety margin, capped at 4/0."""
    if amps <= 0:
        return DEFAULT_GAUGE
    required = amps + SAFETY_MARGIN_AMPS
    for gauge in WIRE_GAUGES:
        if required <= gauge.amps:
            return gauge
    return WIRE_GAUGES[-1]
