"""Named device engines the oracle can be pointed at.

The emulated NumPy engine is always registered as ``"numpy"`` and is the
active engine until another one is selected.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterable, Optional

from .base import DeviceEngine
from .emulated import NumpyDeviceEngine

DEFAULT_ENGINE = "numpy"

_registry: Dict[str, DeviceEngine] = {DEFAULT_ENGINE: NumpyDeviceEngine()}
_active: str = DEFAULT_ENGINE


def _lookup(name: str) -> DeviceEngine:
    try:
        return _registry[name]
    except KeyError:
        known = ", ".join(sorted(_registry))
        raise ValueError(f"Unknown device engine: {name} (registered: {known})") from None


def register_engine(name: str, engine: DeviceEngine) -> DeviceEngine:
    """Register `engine` under `name`; re-registering a name replaces it."""
    if not name:
        raise ValueError("device engine name must be non-empty")
    if not isinstance(engine, DeviceEngine):
        raise TypeError(f"{name}: expected a DeviceEngine, got {type(engine).__name__}")
    _registry[name] = engine
    return engine


def unregister_engine(name: str) -> None:
    global _active
    if name == DEFAULT_ENGINE:
        raise ValueError(f"the '{DEFAULT_ENGINE}' engine cannot be unregistered")
    _lookup(name)
    del _registry[name]
    if _active == name:
        _active = DEFAULT_ENGINE


def set_engine(name: str) -> None:
    global _active
    _lookup(name)
    _active = name


def active_engine_name() -> str:
    return _active


def get_engine(name: Optional[str] = None) -> DeviceEngine:
    return _lookup(_active if name is None else name)


@contextmanager
def use_engine(name: str):
    global _active
    previous = _active
    set_engine(name)
    try:
        yield get_engine()
    finally:
        _active = previous if previous in _registry else DEFAULT_ENGINE


def list_engines() -> Iterable[str]:
    return tuple(_registry)
