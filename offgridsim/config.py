import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from dacite import Config, from_dict

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 1440


@dataclass(frozen=True, slots=True, kw_only=True)
class ClockConfig:
    start_minute: float = 720.0
    speed: float = 60.0  # simulated minutes per real second

    def __post_init__(self):
        if not (0 <= self.start_minute < MINUTES_PER_DAY):
            raise ValueError("Start minute must be within one day (0-1439).")
        if self.speed <= 0:
            raise ValueError("Clock speed must be positive.")


@dataclass(frozen=True, slots=True, kw_only=True)
class SolarConfig:
    sunrise_hour: float = 6.0
    sunset_hour: float = 18.0
    haze_factor: float = 0.05

    def __post_init__(self):
        if not (0 <= self.sunrise_hour < self.sunset_hour <= 24):
            raise ValueError("Sunrise and sunset hours must satisfy 0 <= sunrise < sunset <= 24.")
        if not (0 <= self.haze_factor < 1):
            raise ValueError("Haze factor must be between 0 and 1.")


@dataclass(frozen=True, slots=True, kw_only=True)
class BatteryBankConfig:
    initial_soc: float = 0.5
    min_soc: float = 0.05
    max_soc: float = 1.0
    float_threshold: float = 0.999

    def __post_init__(self):
        if not (0 <= self.min_soc < self.max_soc <= 1):
            raise ValueError("SOC bounds must satisfy 0 <= min_soc < max_soc <= 1.")
        if not (self.min_soc <= self.initial_soc <= self.max_soc):
            raise ValueError("Initial SOC must lie within the SOC bounds.")
        if not (0 < self.float_threshold <= 1):
            raise ValueError("Float threshold must be between 0 and 1.")


@dataclass(frozen=True, slots=True, kw_only=True)
class AutomationConfig:
    enabled: bool = True
    debounce_minutes: float = 5.0
    time_window: float = 2.0
    sun_window: float = 10.0
    sunrise_minute: float = 360.0
    sunset_minute: float = 1080.0

    def __post_init__(self):
        if self.debounce_minutes < 0:
            raise ValueError("Debounce must be non-negative.")
        if self.time_window < 0 or self.sun_window < 0:
            raise ValueError("Trigger windows must be non-negative.")


@dataclass(frozen=True, slots=True, kw_only=True)
class ProtectionConfig:
    check_main_breakers: bool = True


@dataclass(frozen=True, slots=True, kw_only=True)
class RecorderConfig:
    enabled: bool = False
    max_ticks: Optional[int] = 10_000

    def __post_init__(self):
        if self.max_ticks is not None and self.max_ticks <= 0:
            raise ValueError("max_ticks must be positive.")


@dataclass(frozen=True, slots=True, kw_only=True)
class SimulationConfig:
    clock: ClockConfig = field(default_factory=ClockConfig)
    solar: SolarConfig = field(default_factory=SolarConfig)
    battery: BatteryBankConfig = field(default_factory=BatteryBankConfig)
    automation: AutomationConfig = field(default_factory=AutomationConfig)
    protection: ProtectionConfig = field(default_factory=ProtectionConfig)
    recorder: RecorderConfig = field(default_factory=RecorderConfig)


def load_config(source: Union[None, str, Path, Mapping[str, Any]] = None) -> SimulationConfig:
    """
    Builds a :class:`SimulationConfig` from a mapping, a YAML file path or a
    YAML document string. Unknown keys are rejected.
    """
    if source is None:
        return SimulationConfig()
    if isinstance(source, Mapping):
        data = dict(source)
    elif isinstance(source, Path) or str(source).endswith((".yaml", ".yml")):
        logger.info("Loading simulation config from %s", source)
        with open(source, "r") as f:
            data = yaml.safe_load(f) or {}
    else:
        data = yaml.safe_load(source) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Simulation config must be a mapping.")
    return from_dict(SimulationConfig, dict(data), config=Config(cast=[float], strict=True))
