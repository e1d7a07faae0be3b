from .base import DeviceBuffer, DeviceEngine, EngineCapabilities, ExecutionInfo, Plan, PlanDescription, Status
from .emulated import NumpyDeviceEngine
from .registry import (
    DEFAULT_ENGINE,
    active_engine_name,
    get_engine,
    list_engines,
    register_engine,
    set_engine,
    unregister_engine,
    use_engine,
)

__all__ = [
    "DEFAULT_ENGINE",
    "DeviceBuffer",
    "DeviceEngine",
    "EngineCapabilities",
    "ExecutionInfo",
    "NumpyDeviceEngine",
    "Plan",
    "PlanDescription",
    "Status",
    "active_engine_name",
    "get_engine",
    "list_engines",
    "register_engine",
    "set_engine",
    "unregister_engine",
    "use_engine",
]
