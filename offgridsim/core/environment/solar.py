import numpy as np

from offgridsim.config import SolarConfig


class SolarModel:
    """Sinusoidal clear-sky irradiance between sunrise and sunset."""

    def __init__(self, config: SolarConfig = SolarConfig()):
        self.config = config

    @property
    def sunrise_minute(self) -> float:
        return self.config.sunrise_hour * 60.0

    @property
    def sunset_minute(self) -> float:
        return self.config.sunset_hour * 60.0

    def irradiance(self, minute: float) -> float:
        """Fraction of nameplate output available at ``minute``, in [0, 1]."""
        if minute < self.sunrise_minute or minute >= self.sunset_minute:
            return 0.0
        t = (minute - self.sunrise_minute) / (self.sunset_minute - self.sunrise_minute)
        return float(np.clip(np.sin(np.pi * t) * (1.0 - self.config.haze_factor), 0.0, 1.0))

    def is_daylight(self, minute: float) -> bool:
        return self.sunrise_minute <= minute < self.sunset_minute

    def __repr__(self) -> str:
        return f"<SolarModel(sunrise={self.config.sunrise_hour}h, sunset={self.config.sunset_hour}h)>"
