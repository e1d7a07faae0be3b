"""Boundary between the oracle and a device FFT engine.

`DeviceExecution` walks the engine protocol for one configuration: describe the
layout, create the plan and execution info, bind scratch memory, allocate and
fill device buffers, execute, and read the result back. The engine sees the
axis-reversed view of the row-major layouts. Every acquired resource is
registered for release the moment it exists, so closing the execution frees
everything on success, failure and skip alike.
"""

from __future__ import annotations

from contextlib import ExitStack
from itertools import zip_longest
from typing import List, Optional, Sequence

import numpy as np

from .backend.base import DeviceBuffer, DeviceEngine, Status
from .errors import AllocationFailure, EngineFailure, UnsupportedConfiguration
from .layout import LayoutPair, buffer_sizes
from .marshal import allocate_host_buffer
from .memory import device_fits
from .types import Placement, TransformConfig


class DeviceExecution:
    def __init__(
        self,
        engine: DeviceEngine,
        config: TransformConfig,
        layouts: LayoutPair,
        *,
        check_fit: bool = True,
    ):
        self.engine = engine
        self.config = config
        self.layouts = layouts
        self.check_fit = check_fit
        self.description = None
        self.plan = None
        self.info = None
        self.work_bytes = 0
        self.work_buffer: Optional[DeviceBuffer] = None
        self.ibuffers: List[DeviceBuffer] = []
        self.obuffers: List[DeviceBuffer] = []
        self._stack = ExitStack()

    def __enter__(self) -> "DeviceExecution":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._stack.close()
        self.ibuffers = []
        self.obuffers = []
        self.work_buffer = None
        self.plan = None
        self.info = None
        self.description = None

    @property
    def in_place(self) -> bool:
        return self.config.placement is Placement.IN_PLACE

    # ----------------------------- protocol steps -----------------------------
    def _check(self, call: str, status: Status) -> None:
        if status is Status.OUT_OF_MEMORY:
            raise AllocationFailure(call)
        if not status.ok:
            raise EngineFailure(call, status)

    def create_plan(self) -> None:
        engine = self.engine
        config = self.config
        ilayout, olayout = self.layouts.engine_view()

        status, self.description = engine.create_plan_description()
        self._check("create_plan_description", status)
        self._stack.callback(engine.destroy_plan_description, self.description)

        status = engine.set_data_layout(
            self.description,
            config.itype,
            config.otype,
            (ilayout.offset,) * config.itype.buffer_count,
            (olayout.offset,) * config.otype.buffer_count,
            ilayout.strides,
            ilayout.distance,
            olayout.strides,
            olayout.distance,
        )
        self._check("set_data_layout", status)

        status, self.plan = engine.create_plan(
            config.placement,
            config.kind,
            config.precision,
            tuple(reversed(config.shape)),
            config.batch,
            self.description,
        )
        self._check("create_plan", status)
        self._stack.callback(engine.destroy_plan, self.plan)

        status, self.info = engine.create_execution_info()
        self._check("create_execution_info", status)
        self._stack.callback(engine.destroy_execution_info, self.info)

        status, self.work_bytes = engine.get_work_buffer_size(self.plan)
        self._check("get_work_buffer_size", status)

    def _allocate(self, what: str, nbytes: int) -> DeviceBuffer:
        status, buffer = self.engine.allocate(nbytes)
        if not status.ok or buffer is None:
            raise AllocationFailure(what, nbytes)
        self._stack.callback(self.engine.free, buffer)
        return buffer

    def buffer_bytes(self) -> tuple:
        """Per-buffer byte sizes for (input, output); in-place shares the input's."""
        precision = self.config.precision
        isizes = buffer_sizes(precision, self.layouts.input)
        osizes = buffer_sizes(precision, self.layouts.output)
        if self.in_place:
            isizes = [max(a or 0, b or 0) for a, b in zip_longest(isizes, osizes)]
            return isizes, []
        return isizes, osizes

    def allocate(self) -> None:
        isizes, osizes = self.buffer_bytes()
        if self.check_fit:
            free, _ = self.engine.memory_info()
            if not device_fits(free, sum(isizes), sum(osizes), self.work_bytes):
                raise UnsupportedConfiguration(
                    f"problem needs {sum(isizes) + sum(osizes) + self.work_bytes} device bytes, "
                    f"{free} free"
                )

        if self.work_bytes > 0:
            self.work_buffer = self._allocate("work buffer", self.work_bytes)
            self._check(
                "set_work_buffer",
                self.engine.set_work_buffer(self.info, self.work_buffer, self.work_bytes),
            )

        for idx, nbytes in enumerate(isizes):
            self.ibuffers.append(self._allocate(f"input buffer {idx}", nbytes))
        if self.in_place:
            self.obuffers = self.ibuffers
        else:
            for idx, nbytes in enumerate(osizes):
                self.obuffers.append(self._allocate(f"output buffer {idx}", nbytes))

    def prepare(self) -> None:
        self.create_plan()
        self.allocate()

    def execute(self, host_input: Sequence[np.ndarray]) -> None:
        """Upload `host_input` (already in the device layout) and execute."""
        if self.plan is None:
            self.prepare()
        for dev, host in zip(self.ibuffers, host_input):
            self._check("copy_to_device", self.engine.copy_to_device(dev, host))
        self._check("execute", self.engine.execute(self.plan, self.ibuffers, self.obuffers, self.info))

    def download(self) -> List[np.ndarray]:
        host_output = allocate_host_buffer(self.config.precision, self.layouts.output)
        for host, dev in zip(host_output, self.obuffers):
            self._check("copy_to_host", self.engine.copy_to_host(host, dev))
        return host_output

    def run(self, host_input: Sequence[np.ndarray]) -> List[np.ndarray]:
        self.execute(host_input)
        return self.download()
