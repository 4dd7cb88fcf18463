# A small cabin system: two panels on a hybrid inverter, one battery, a
# breaker panel with a fridge and a heater, and a water pump filling a tank.

import logging

from offgridsim import SimulationSession
from offgridsim.core.graph import ComponentKind

logging.basicConfig(level=logging.INFO)

yaml_str = """
clock:
  start_minute: 360
  speed: 15
battery:
  initial_soc: 0.6
automation:
  debounce_minutes: 5
recorder:
  enabled: true
  max_ticks: 1000
"""

session = SimulationSession.from_config(yaml_str)
print("Session created successfully.")

panel = {"wattage": 400, "vmp": 40, "voc": 48}
session.add_component(ComponentKind.PANEL, panel, "pv1")
session.add_component(ComponentKind.PANEL, panel, "pv2")
session.add_component(ComponentKind.CONTROLLER, component_id="inverter")
session.add_component(ComponentKind.BATTERY, {"voltage": 48, "amp_hours": 200}, "bank")
circuits = [{"rating": 20, "voltage": 120}, {"rating": 15, "voltage": 120}, {"rating": 15, "voltage": 120}]
session.add_component(ComponentKind.BREAKER_PANEL, {"circuits": circuits}, "panel")
session.add_component(ComponentKind.AC_LOAD, {"name": "Fridge", "watts": 150}, "fridge")
session.add_component(ComponentKind.AC_LOAD, {"name": "Space Heater", "watts": 2000}, "heater")
session.add_component(
    ComponentKind.PRODUCER,
    {"name": "Well Pump", "watts": 500, "recipe": {"output": "water", "rate": 5, "unit": "gal"}},
    "pump",
)
session.add_component(ComponentKind.CONTAINER, {"capacity": 100}, "tank")

session.connect("pv1", "positive", "inverter", "pv_positive")
session.connect("pv1", "negative", "pv2", "positive")
session.connect("pv2", "negative", "inverter", "pv_negative")
session.connect("bank", "positive", "inverter", "battery_positive")
session.connect("bank", "negative", "inverter", "battery_negative")
session.connect("inverter", "ac_output", "panel", "main")
session.connect("panel", "circuit_1", "fridge", "input")
session.connect("panel", "circuit_2", "heater", "input")
session.connect("panel", "circuit_3", "pump", "input")
session.connect("pump", "pipe_out", "tank", "pipe_in")
print(f"Circuit built: {session.graph!r}")

session.create_rule_from_preset("Low Battery Saver")
session.on_trip(lambda event: print(f"TRIP {event.breaker_id}: {event.amps:.1f}A"))
session.on_rule_fired(lambda event: print(f"RULE {event.message}"))

session.start_live()
session.set_load("fridge", True)
session.set_load("pump", True)
session.set_load("heater", True)  # 16.7A on a 15A circuit
session.play()

for step in range(96):  # one simulated day at 15 minutes per tick
    session.tick(1)
    if step % 8 == 0:
        display = session.display()
        print(
            f"{display.time:>8}  sun {display.irradiance_percent:5.1f}%  "
            f"solar {display.solar_watts:7.1f}W  load {display.load_watts:7.1f}W  "
            f"battery {display.battery_percent:5.1f}%"
        )

print(f"Water in tank: {session.resources.level('tank'):.1f} gal")
df = session.recorder.to_dataframe()
print(df[["minute", "solar_watts", "load_watts", "weighted_soc"]].describe())
