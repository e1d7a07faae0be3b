from __future__ import annotations

from typing import Optional


class UnsupportedConfiguration(Exception):
    """A configuration the oracle skips; never counted as a defect."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class AllocationFailure(RuntimeError):
    """Host or device memory could not be provided for a configuration."""

    def __init__(self, what: str, nbytes: Optional[int] = None):
        msg = f"allocation failure for {what}"
        if nbytes is not None:
            msg += f" ({nbytes} bytes)"
        super().__init__(msg)
        self.what = what
        self.nbytes = nbytes


class EngineFailure(RuntimeError):
    """A device-engine call returned a non-success status."""

    def __init__(self, call: str, status):
        super().__init__(f"{call} returned {getattr(status, 'name', status)}")
        self.call = call
        self.status = status
