from offgridsim.core.environment.battery import BankStep, BatteryBank
from offgridsim.core.environment.clock import SimulationClock, format_time, parse_time
from offgridsim.core.environment.solar import SolarModel

__all__ = [
    "BankStep",
    "BatteryBank",
    "SimulationClock",
    "SolarModel",
    "format_time",
    "parse_time",
]
