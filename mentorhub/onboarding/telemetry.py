"""
In-memory counters for onboarding transitions.

Intent:
    Keep instrumentation simple while giving tests and local debugging a way
    to see how many transitions succeeded, failed or were superseded. An
    exporter can read `counter_snapshot` later; this module only counts.
"""
from __future__ import annotations

from collections import defaultdict
from threading import Lock
from typing import Dict, Tuple

LabelKey = Tuple[Tuple[str, str], ...]
_counters: Dict[str, Dict[LabelKey, int]] = defaultdict(dict)
_lock = Lock()

TRANSITIONS_TOTAL = "onboarding_transitions_total"


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def increment_counter(name: str, *, amount: int = 1, **labels: str) -> None:
    """Increase a named counter by `amount` (defaults to 1)."""
    if amount == 0:
        return
    key = _label_key(labels)
    with _lock:
        _counters[name][key] = _counters[name].get(key, 0) + amount


def record_transition(kind: str, outcome: str) -> None:
    increment_counter(TRANSITIONS_TOTAL, kind=kind, outcome=outcome)


def counter_value(name: str, **labels: str) -> int:
    with _lock:
        return _counters.get(name, {}).get(_label_key(labels), 0)


def counter_snapshot(name: str) -> dict[LabelKey, int]:
    """Return a shallow copy of the stored counter values."""
    with _lock:
        return dict(_counters.get(name, {}))


def reset_for_tests() -> None:
    """Clear all counters. Intended for pytest fixtures."""
    with _lock:
        _counters.clear()
