import re
from dataclasses import dataclass

from offgridsim.config import MINUTES_PER_DAY, ClockConfig

_TIME_24H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")
_TIME_12H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")


def format_time(minute: float) -> str:
    """Minutes since midnight as a 12-hour clock string, e.g. ``6:30 PM``."""
    total = int(minute) % MINUTES_PER_DAY
    hours, minutes = divmod(total, 60)
    suffix = "PM" if hours >= 12 else "AM"
    display = hours % 12 or 12
    return f"{display}:{minutes:02d} {suffix}"


def parse_time(text: str) -> int:
    """Parses ``18:30`` or ``6:30 PM`` into minutes since midnight."""
    match = _TIME_12H.match(text)
    if match:
        hours, minutes, suffix = int(match[1]), int(match[2]), match[3].upper()
        if not (1 <= hours <= 12) or minutes > 59:
            raise ValueError(f"Invalid time '{text}'.")
        hours = hours % 12 + (12 if suffix == "PM" else 0)
        return hours * 60 + minutes
    match = _TIME_24H.match(text)
    if match:
        hours, minutes = int(match[1]), int(match[2])
        if hours > 23 or minutes > 59:
            raise ValueError(f"Invalid time '{text}'.")
        return hours * 60 + minutes
    raise ValueError(f"Unrecognised time '{text}'.")


@dataclass
class SimulationClock:
    """
    Simulated time of day. The caller drives it with elapsed real seconds;
    nothing advances while paused.
    """

    minute: float = 720.0
    speed: float = 60.0
    playing: bool = False
    day: int = 0

    @classmethod
    def from_config(cls, config: ClockConfig) -> "SimulationClock":
        return cls(minute=config.start_minute, speed=config.speed)

    def advance(self, real_seconds: float) -> float:
        """Moves time forward; returns the simulated minutes that elapsed."""
        if real_seconds < 0:
            raise ValueError("Elapsed time must be non-negative.")
        if not self.playing:
            return 0.0
        delta = real_seconds * self.speed
        days, self.minute = divmod(self.minute + delta, MINUTES_PER_DAY)
        self.day += int(days)
        return delta

    def play(self) -> None:
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    def seek(self, minute: float) -> None:
        self.minute = minute % MINUTES_PER_DAY

    def reset(self, minute: float = 720.0) -> None:
        self.minute = minute % MINUTES_PER_DAY
        self.day = 0
        self.playing = False

    def set_speed(self, speed: float) -> None:
        if speed <= 0:
            raise ValueError("Clock speed must be positive.")
        self.speed = speed

    @property
    def hours(self) -> float:
        return self.minute / 60.0

    @property
    def formatted(self) -> str:
        return format_time(self.minute)
