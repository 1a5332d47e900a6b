# buildapp/utils/state_machine.py
"""
Explicit transition tables for status columns.

A table maps (current state, event) to the next state, an optional guard
and the side effects to apply. Manual endpoints and scheduled jobs both go
through `TransitionTable.apply`, so the two paths cannot drift apart.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from buildapp.core.errors import ConflictError


@dataclass(frozen=True)
class Actor:
    role: str  # buyer | supplier | system
    id: Optional[str] = None

    @property
    def is_system(self) -> bool:
        return self.role == "system"


SYSTEM = Actor(role="system")


@dataclass
class TransitionContext:
    actor: Actor
    now: datetime
    payload: Dict[str, Any] = field(default_factory=dict)


Guard = Callable[[Any, TransitionContext], None]
Effect = Callable[[Any, TransitionContext], None]


@dataclass(frozen=True)
class Transition:
    target: str
    guard: Optional[Guard] = None
    effects: Tuple[Effect, ...] = ()


class TransitionTable:
    def __init__(self, entity_name: str, status_attr: str = "status"):
        self.entity_name = entity_name
        self.status_attr = status_attr
        self._table: Dict[Tuple[str, str], Transition] = {}

    def add(
        self,
        sources: Iterable[str],
        event: str,
        target: str,
        guard: Optional[Guard] = None,
        effects: Iterable[Effect] = (),
    ) -> "TransitionTable":
        transition = Transition(target=target, guard=guard, effects=tuple(effects))
        for source in sources:
            self._table[(source, event)] = transition
        return self

    def events_from(self, state: str) -> list:
        return sorted(event for (source, event) in self._table if source == state)

    def resolve(self, state: str, event: str) -> Transition:
        transition = self._table.get((state, event))
        if transition is None:
            raise ConflictError(
                f"Cannot {event.replace('_', ' ')} {self.entity_name} "
                f"in status '{state}'",
                details={"current_status": state, "requested": event},
            )
        return transition

    def apply(self, entity, event: str, ctx: TransitionContext) -> Tuple[str, str]:
        """Guard, move and run effects. Returns (old_status, new_status)."""
        current = getattr(entity, self.status_attr)
        transition = self.resolve(current, event)
        if transition.guard is not None:
            transition.guard(entity, ctx)
        setattr(entity, self.status_attr, transition.target)
        for effect in transition.effects:
            effect(entity, ctx)
        return current, transition.target
