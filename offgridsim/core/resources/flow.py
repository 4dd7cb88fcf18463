import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from offgridsim.core.graph.circuit import CircuitGraph
from offgridsim.core.graph.kinds import ComponentKind
from offgridsim.core.graph.model import Component, Endpoint
from offgridsim.core.live.state import LiveState

logger = logging.getLogger(__name__)

INPUT_RATIO = 2.0  # units of input consumed per unit produced
MIN_INPUT_FRACTION = 0.5

INTERNAL_TANK = "internal"


@dataclass(frozen=True, slots=True)
class Production:
    producer_id: str
    resource: str
    amount: float
    destination: str  # container id, or "internal" for the producer's own tank
    consumed: float = 0.0


class ResourceSystem:
    """
    Producer to container resource model.

    A switched-on producer makes ``rate`` units per simulated hour. Producers
    with an input resource draw twice that from a connected input container
    and produce nothing when less than half of the need is available.
    """

    def __init__(self):
        self.levels: dict[str, float] = {}

    def level(self, container_id: str) -> float:
        return self.levels.get(container_id, 0.0)

    def fill_fraction(self, graph: CircuitGraph, container_id: str) -> float:
        container = graph.component(container_id)
        return min(1.0, self.level(container_id) / container.specs.capacity)

    def add(self, container: Component, amount: float) -> float:
        self.levels[container.id] = min(container.specs.capacity, self.level(container.id) + amount)
        return self.levels[container.id]

    def remove(self, container_id: str, amount: float) -> float:
        removed = min(self.level(container_id), amount)
        self.levels[container_id] = self.level(container_id) - removed
        return removed

    def find_container(
        self,
        graph: CircuitGraph,
        producer: Component,
        port_key: str,
        resource: str,
    ) -> Optional[Component]:
        """A container of ``resource`` piped to ``port_key``, else the first one in the graph."""
        for _, far in graph.wires_at(Endpoint(producer.id, port_key)):
            container = graph.get(far.component_id)
            if container is not None and container.kind is ComponentKind.CONTAINER:
                if container.specs.resource == resource:
                    return container
        fallback = [c for c in graph.of_kind(ComponentKind.CONTAINER) if c.specs.resource == resource]
        return fallback[0] if fallback else None

    def process_production(self, graph: CircuitGraph, live: LiveState, delta_hours: float) -> list[Production]:
        if not live.active or delta_hours <= 0:
            return []

        produced = []
        for producer in graph.of_kind(ComponentKind.PRODUCER):
            if not live.is_on(producer.id):
                continue
            recipe = producer.specs.recipe
            if recipe.is_storage:
                continue
            amount = recipe.rate * delta_hours

            consumed = 0.0
            if recipe.input:
                source = self.find_container(graph, producer, "pipe_in", recipe.input)
                if source is None:
                    logger.debug("Producer %s has no %s supply", producer.id, recipe.input)
                    continue
                needed = amount * INPUT_RATIO
                if self.level(source.id) < needed * MIN_INPUT_FRACTION:
                    logger.debug("Producer %s starved of %s", producer.id, recipe.input)
                    continue
                consumed = self.remove(source.id, needed)

            target = self.find_container(graph, producer, "pipe_out", recipe.output)
            if target is not None:
                self.add(target, amount)
                destination = target.id
            elif producer.specs.tank_size > 0:
                producer.internal_storage = min(producer.specs.tank_size, producer.internal_storage + amount)
                destination = INTERNAL_TANK
            else:
                continue
            produced.append(
                Production(
                    producer_id=producer.id,
                    resource=recipe.output,
                    amount=amount,
                    destination=destination,
                    consumed=consumed,
                )
            )
        return produced

    def export_state(self) -> dict[str, Any]:
        return {"container_levels": dict(self.levels)}

    def import_state(self, data: Optional[Mapping[str, Any]]) -> None:
        if data and "container_levels" in data:
            self.levels = {k: float(v) for k, v in data["container_levels"].items()}

    def clear(self) -> None:
        self.levels = {}

    def __repr__(self) -> str:
        return f"<ResourceSystem(containers={len(self.levels)})>"
