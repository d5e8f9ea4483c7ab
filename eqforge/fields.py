"""
eqforge/fields.py
Named numeric field store

The engine never touches host state directly; it reads and writes numeric
fields through a FieldStore. DictFieldStore is the in-memory default and
notifies listeners synchronously on every write, the way the host page
fires its input/change events.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Mapping, Optional

from .config import FIELD_DEFAULTS, FIELD_KEYS
from .numeric import precision_for, round_for_write
from .models import ParameterBundle

logger = logging.getLogger(__name__)

Listener = Callable[[str, float], None]


class FieldStore(ABC):
    """Capability for reading and writing named numeric fields."""

    @abstractmethod
    def get(self, key: str, default: Optional[float] = None) -> float:
        """Current value of key, or default when unset or unparsable."""
        pass

    @abstractmethod
    def set(self, key: str, value: float) -> None:
        pass

    def get_role(self, role: str) -> float:
        """Read a field by logical role ("a", "y_scale", ...)."""
        key = FIELD_KEYS[role]
        return self.get(key, FIELD_DEFAULTS[key])

    def update(self, values: Mapping[str, float]) -> None:
        for key, value in values.items():
            self.set(key, value)


class DictFieldStore(FieldStore):
    """
    In-memory field store.

    Usage:
        store = DictFieldStore({"paramA": 2.0})
        unsubscribe = store.subscribe(lambda key, value: print(key, value))
        store.set("yScale", 0.8)
    """

    def __init__(self, initial: Optional[Mapping[str, float]] = None):
        self._values: Dict[str, object] = dict(initial or {})
        self._listeners: List[Listener] = []

    def get(self, key: str, default: Optional[float] = None) -> float:
        if default is None:
            default = FIELD_DEFAULTS.get(key, 0.0)
        raw = self._values.get(key)
        if raw is None:
            return float(default)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return float(default)
        if not math.isfinite(value):
            return float(default)
        return value

    def set(self, key: str, value: float) -> None:
        value = round_for_write(value, precision_for(key))
        self._values[key] = value
        for listener in list(self._listeners):
            listener(key, value)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener(key, value) on every write; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> Dict[str, float]:
        """All explicitly held fields, coerced to float."""
        return {key: self.get(key) for key in self._values}

    def __contains__(self, key: str) -> bool:
        return key in self._values


# =============================================================================
# Readers
# =============================================================================

def read_bundle(store: FieldStore) -> ParameterBundle:
    """The output-stage values the host currently holds."""
    return ParameterBundle(
        y_scale=store.get_role("y_scale"),
        main_volume=store.get_role("main_volume"),
        filter_cutoff=store.get_role("filter_cutoff"),
        filter_resonance=store.get_role("filter_resonance"),
        glide_time=store.get_role("glide_time"),
    )


def read_analysis_inputs(store: FieldStore) -> Dict[str, float]:
    """Keyword arguments for analyze(), minus the expression."""
    return {
        "a": store.get_role("a"),
        "b": store.get_role("b"),
        "c": store.get_role("c"),
        "d": store.get_role("d"),
        "x_scale": store.get_role("x_scale"),
        "y_scale": store.get_role("y_scale"),
        "x_offset": store.get_role("x_offset"),
        "mirror_mask": int(store.get_role("mirror")),
    }
