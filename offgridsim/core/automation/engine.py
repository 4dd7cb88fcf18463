import logging
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

from dacite import Config, from_dict

from offgridsim.config import AutomationConfig
from offgridsim.core.automation.rules import (
    PRESETS,
    ActionType,
    AutomationRule,
    Readings,
    RuleAction,
    RuleFired,
    RuleSource,
    Trigger,
)
from offgridsim.core.graph.circuit import CircuitGraph
from offgridsim.core.graph.kinds import BREAKER_KINDS
from offgridsim.core.graph.model import Component
from offgridsim.core.live.state import LiveState
from offgridsim.core.utils.converter import to_plain

logger = logging.getLogger(__name__)

RULES_FORMAT_VERSION = 1
DACITE_CONFIG = Config(cast=[Enum, tuple, float], strict=True)

RuleCallback = Callable[[RuleFired], None]


class AutomationEngine:
    """
    Evaluates trigger/action rules once per tick.

    A rule that fires is debounced for ``debounce_minutes`` of simulated time
    (absolute, so a full day apart is never debounced). Moment triggers (time,
    sunrise, sunset) fire once per visit to their window.
    """

    def __init__(self, config: AutomationConfig = AutomationConfig()):
        self.config = config
        self.enabled = config.enabled
        self._rules: list[AutomationRule] = []
        self._counter = 0
        self._inside: dict[str, bool] = {}
        self._subscribers: list[RuleCallback] = []

    # ------------------------------------------------------------------
    # Rule management
    # ------------------------------------------------------------------
    @property
    def rules(self) -> list[AutomationRule]:
        return list(self._rules)

    def create_rule(
        self,
        name: str,
        trigger: Trigger,
        action: RuleAction,
        source: RuleSource = RuleSource.USER,
    ) -> AutomationRule:
        rule = AutomationRule(
            id=self._next_id(),
            name=name or "Unnamed Rule",
            trigger=trigger,
            action=action,
            source=source,
        )
        self._rules.append(rule)
        logger.debug("Created rule %s (%s)", rule.id, rule.describe())
        return rule

    def create_from_preset(self, preset: Union[int, str]) -> AutomationRule:
        if isinstance(preset, int):
            if not 0 <= preset < len(PRESETS):
                raise KeyError(f"Unknown preset index {preset}.")
            chosen = PRESETS[preset]
        else:
            matches = [p for p in PRESETS if p.name == preset]
            if not matches:
                raise KeyError(f"Unknown preset '{preset}'.")
            chosen = matches[0]
        return self.create_rule(chosen.name, chosen.trigger, chosen.action, source=RuleSource.PRESET)

    def get_rule(self, rule_id: str) -> Optional[AutomationRule]:
        return next((r for r in self._rules if r.id == rule_id), None)

    def rule(self, rule_id: str) -> AutomationRule:
        rule = self.get_rule(rule_id)
        if rule is None:
            raise KeyError(f"Unknown rule '{rule_id}'.")
        return rule

    def delete_rule(self, rule_id: str) -> AutomationRule:
        rule = self.rule(rule_id)
        self._rules.remove(rule)
        self._inside.pop(rule_id, None)
        return rule

    def toggle_rule(self, rule_id: str) -> bool:
        rule = self.rule(rule_id)
        rule.enabled = not rule.enabled
        return rule.enabled

    def set_enabled(self, rule_id: str, enabled: bool) -> None:
        self.rule(rule_id).enabled = enabled

    def clear(self) -> None:
        self._rules = []
        self._inside = {}
        self._counter = 0

    def _next_id(self) -> str:
        taken = {r.id for r in self._rules}
        while True:
            self._counter += 1
            candidate = f"auto-{self._counter}"
            if candidate not in taken:
                return candidate

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(self, callback: RuleCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: RuleCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def debounced(self, rule: AutomationRule, elapsed: float) -> bool:
        """Whether ``rule`` fired too recently to fire again at ``elapsed`` simulated minutes."""
        if rule.last_triggered is None:
            return False
        return abs(elapsed - rule.last_triggered) <= self.config.debounce_minutes

    def check_trigger(self, rule: AutomationRule, readings: Readings) -> bool:
        """
        Trigger condition. A moment trigger only counts until the rule has
        fired inside its current window; leaving the window re-arms it.
        """
        met = rule.trigger.is_met(readings, self.config)
        if not rule.trigger.moment:
            return met
        if not met:
            self._inside[rule.id] = False
        return met and not self._inside.get(rule.id, False)

    def evaluate(self, graph: CircuitGraph, live: LiveState, readings: Readings) -> list[RuleFired]:
        if not self.enabled:
            return []

        fired = []
        for rule in self._rules:
            if not rule.enabled:
                continue
            if not self.check_trigger(rule, readings):
                continue
            if self.debounced(rule, readings.elapsed):
                continue
            affected = self.apply_action(graph, live, rule.action)
            if not affected:
                continue
            rule.last_triggered = readings.elapsed
            if rule.trigger.moment:
                self._inside[rule.id] = True
            event = RuleFired(
                rule_id=rule.id,
                name=rule.name,
                minute=readings.minute,
                affected=tuple(affected),
                day=readings.day,
            )
            logger.info("Rule '%s' fired: %d device(s) %s", rule.name, len(affected), rule.action.describe())
            fired.append(event)

        for event in fired:
            self._notify(event)
        return fired

    def targets(self, graph: CircuitGraph, action: RuleAction) -> list[Component]:
        if action.target_ids:
            found = []
            for component_id in action.target_ids:
                component = graph.get(component_id)
                if component is None:
                    logger.debug("Rule target '%s' no longer exists", component_id)
                    continue
                found.append(component)
            return found
        if action.target_kind is not None:
            return graph.of_kind(action.target_kind)
        return []

    def apply_action(self, graph: CircuitGraph, live: LiveState, action: RuleAction) -> list[str]:
        """Applies ``action`` to its targets; returns the ids acted upon."""
        affected = []
        for component in self.targets(graph, action):
            if component.is_consumer:
                current = live.is_on(component.id)
                live.set_load(component.id, _switched(action.type, current))
            elif component.kind in BREAKER_KINDS:
                component.is_closed = _switched(action.type, component.is_closed)
                state = live.breaker_states.get(component.id)
                if state is not None:
                    state.is_closed = component.is_closed and not state.was_tripped
                live.bump()
            else:
                continue
            affected.append(component.id)
        return affected

    def _notify(self, event: RuleFired) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Rule subscriber %r failed for %s", callback, event.rule_id)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def serialize(self) -> dict[str, Any]:
        return {
            "version": RULES_FORMAT_VERSION,
            "rules": [rule_to_dict(rule) for rule in self._rules],
            "rule_id_counter": self._counter,
        }

    def deserialize(self, data: Optional[Mapping[str, Any]], merge: bool = False) -> list[AutomationRule]:
        """
        Loads rules saved by :meth:`serialize`.

        Without ``merge`` existing rules are replaced. With ``merge`` they are
        kept and imported rules whose id is already taken get a fresh id.
        """
        if not data or not data.get("rules"):
            return []
        if not merge:
            self._rules = []
            self._inside = {}

        counter = int(data.get("rule_id_counter", 0))
        if counter > self._counter:
            self._counter = counter

        loaded = []
        for record in data["rules"]:
            rule = rule_from_dict(record)
            if merge and self.get_rule(rule.id) is not None:
                rule.id = self._next_id()
            self._rules.append(rule)
            loaded.append(rule)
        logger.info("Loaded %d automation rule(s)", len(loaded))
        return loaded

    def __repr__(self) -> str:
        return f"<AutomationEngine(rules={len(self._rules)}, enabled={self.enabled})>"


def _switched(action: ActionType, current: bool) -> bool:
    if action is ActionType.TURN_ON:
        return True
    if action is ActionType.TURN_OFF:
        return False
    return not current


def rule_to_dict(rule: AutomationRule) -> dict[str, Any]:
    return {
        "id": rule.id,
        "name": rule.name,
        "enabled": rule.enabled,
        "trigger": to_plain(rule.trigger),
        "action": to_plain(rule.action),
        "source": rule.source.value,
    }


def rule_from_dict(record: Mapping[str, Any]) -> AutomationRule:
    data = {
        "id": record["id"],
        "name": record.get("name", "Unnamed Rule"),
        "enabled": record.get("enabled", True) is not False,
        "trigger": record["trigger"],
        "action": record["action"],
        "source": record.get("source", RuleSource.IMPORTED.value),
    }
    return from_dict(AutomationRule, data, config=DACITE_CONFIG)
