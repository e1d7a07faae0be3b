from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from ..types import ArrayType, EngineLayout, Layout, Placement, Precision, TransformKind


class Status(Enum):
    SUCCESS = 0
    FAILURE = 1
    INVALID_ARG_VALUE = 2
    INVALID_DIMENSIONS = 3
    INVALID_ARRAY_TYPE = 4
    INVALID_STRIDES = 5
    INVALID_DISTANCE = 6
    INVALID_OFFSET = 7
    INVALID_WORK_BUFFER = 8
    OUT_OF_MEMORY = 9

    @property
    def ok(self) -> bool:
        return self is Status.SUCCESS


@dataclass(frozen=True)
class EngineCapabilities:
    supports_double: bool = True
    supports_planar: bool = True
    supports_inplace: bool = True
    max_rank: int = 3


@dataclass
class PlanDescription:
    """Data-layout metadata attached before plan creation (engine axis order)."""

    itype: Optional[ArrayType] = None
    otype: Optional[ArrayType] = None
    ioffset: Tuple[int, ...] = (0, 0)
    ooffset: Tuple[int, ...] = (0, 0)
    istride: Tuple[int, ...] = ()
    idist: int = 0
    ostride: Tuple[int, ...] = ()
    odist: int = 0


@dataclass
class Plan:
    placement: Placement
    kind: TransformKind
    precision: Precision
    lengths: Tuple[int, ...]
    batch: int
    description: PlanDescription
    work_bytes: int = 0
    state: Any = None


@dataclass
class ExecutionInfo:
    work_buffer: Any = None
    work_bytes: int = 0


@dataclass
class DeviceBuffer:
    """Opaque device allocation; `data` is engine-specific."""

    nbytes: int
    data: Any = None
    meta: dict = field(default_factory=dict)


class DeviceEngine:
    """Status-returning device FFT protocol consumed by the execution adapter.

    Lengths and strides arrive in engine order (fastest axis first).
    """

    name: str = "base"

    def __init__(self, capabilities: Optional[EngineCapabilities] = None):
        self.capabilities = capabilities or EngineCapabilities()
        self.metrics = {"calls": 0}

    # ---- observability helpers ----------------------------------------------
    def _record(self, _: str) -> None:
        self.metrics["calls"] += 1

    def reset_metrics(self) -> None:
        self.metrics = {"calls": 0}

    # ---- plan protocol --------------------------------------------------------
    def create_plan_description(self) -> Tuple[Status, Optional[PlanDescription]]:
        self._record("create_plan_description")
        return Status.SUCCESS, PlanDescription()

    def set_data_layout(
        self,
        description: PlanDescription,
        itype: ArrayType,
        otype: ArrayType,
        ioffset: Sequence[int],
        ooffset: Sequence[int],
        istride: Sequence[int],
        idist: int,
        ostride: Sequence[int],
        odist: int,
    ) -> Status:
        self._record("set_data_layout")
        if description is None:
            return Status.INVALID_ARG_VALUE
        if any(s < 0 for s in tuple(istride) + tuple(ostride)):
            return Status.INVALID_STRIDES
        if idist < 0 or odist < 0:
            return Status.INVALID_DISTANCE
        if any(o < 0 for o in tuple(ioffset) + tuple(ooffset)):
            return Status.INVALID_OFFSET
        description.itype = itype
        description.otype = otype
        description.ioffset = tuple(ioffset)
        description.ooffset = tuple(ooffset)
        description.istride = tuple(istride)
        description.idist = int(idist)
        description.ostride = tuple(ostride)
        description.odist = int(odist)
        return Status.SUCCESS

    def create_plan(
        self,
        placement: Placement,
        kind: TransformKind,
        precision: Precision,
        lengths: Sequence[int],
        batch: int,
        description: PlanDescription,
    ) -> Tuple[Status, Optional[Plan]]:
        self._record("create_plan")
        lengths = tuple(int(n) for n in lengths)
        if not lengths or len(lengths) > self.capabilities.max_rank or any(n <= 0 for n in lengths):
            return Status.INVALID_DIMENSIONS, None
        if batch <= 0:
            return Status.INVALID_ARG_VALUE, None
        if precision is Precision.DOUBLE and not self.capabilities.supports_double:
            return Status.FAILURE, None
        if placement is Placement.IN_PLACE and not self.capabilities.supports_inplace:
            return Status.FAILURE, None
        if description.itype is None or description.otype is None:
            return Status.INVALID_ARRAY_TYPE, None
        if not kind.accepts(description.itype, description.otype):
            return Status.INVALID_ARRAY_TYPE, None
        planar = description.itype.is_planar or description.otype.is_planar
        if planar and not self.capabilities.supports_planar:
            return Status.INVALID_ARRAY_TYPE, None
        if len(description.istride) != len(lengths) or len(description.ostride) != len(lengths):
            return Status.INVALID_STRIDES, None
        plan = Plan(
            placement=placement,
            kind=kind,
            precision=precision,
            lengths=lengths,
            batch=int(batch),
            description=description,
        )
        status = self._build(plan)
        if not status.ok:
            return status, None
        return Status.SUCCESS, plan

    def create_execution_info(self) -> Tuple[Status, Optional[ExecutionInfo]]:
        self._record("create_execution_info")
        return Status.SUCCESS, ExecutionInfo()

    def get_work_buffer_size(self, plan: Plan) -> Tuple[Status, int]:
        self._record("get_work_buffer_size")
        if plan is None:
            return Status.INVALID_ARG_VALUE, 0
        return Status.SUCCESS, plan.work_bytes

    def set_work_buffer(self, info: ExecutionInfo, buffer: DeviceBuffer, nbytes: int) -> Status:
        self._record("set_work_buffer")
        if info is None or buffer is None or buffer.nbytes < nbytes:
            return Status.INVALID_WORK_BUFFER
        info.work_buffer = buffer
        info.work_bytes = int(nbytes)
        return Status.SUCCESS

    def execute(
        self,
        plan: Plan,
        in_buffers: Sequence[DeviceBuffer],
        out_buffers: Sequence[DeviceBuffer],
        info: Optional[ExecutionInfo],
    ) -> Status:
        self._record("execute")
        if plan is None:
            return Status.INVALID_ARG_VALUE
        if plan.work_bytes and (info is None or info.work_bytes < plan.work_bytes):
            return Status.INVALID_WORK_BUFFER
        return self._execute(plan, in_buffers, out_buffers)

    def destroy_plan(self, plan: Plan) -> Status:
        self._record("destroy_plan")
        plan.state = None
        return Status.SUCCESS

    def destroy_plan_description(self, description: PlanDescription) -> Status:
        self._record("destroy_plan_description")
        return Status.SUCCESS

    def destroy_execution_info(self, info: ExecutionInfo) -> Status:
        self._record("destroy_execution_info")
        info.work_buffer = None
        return Status.SUCCESS

    # ---- memory primitives ----------------------------------------------------
    def memory_info(self) -> Tuple[int, int]:
        """(free, total) device bytes."""
        raise NotImplementedError

    def allocate(self, nbytes: int) -> Tuple[Status, Optional[DeviceBuffer]]:
        raise NotImplementedError

    def free(self, buffer: DeviceBuffer) -> Status:
        raise NotImplementedError

    def copy_to_device(self, buffer: DeviceBuffer, host: np.ndarray) -> Status:
        raise NotImplementedError

    def copy_to_host(self, host: np.ndarray, buffer: DeviceBuffer) -> Status:
        raise NotImplementedError

    # ---- engine hooks ---------------------------------------------------------
    def _build(self, plan: Plan) -> Status:
        return Status.SUCCESS

    def _execute(
        self, plan: Plan, in_buffers: Sequence[DeviceBuffer], out_buffers: Sequence[DeviceBuffer]
    ) -> Status:
        raise NotImplementedError


def engine_io_lengths(plan: Plan) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """Input and output lengths of a plan in engine order (Hermitian axis first)."""
    ilengths: List[int] = list(plan.lengths)
    olengths: List[int] = list(plan.lengths)
    if plan.kind is TransformKind.REAL_FORWARD:
        olengths[0] = olengths[0] // 2 + 1
    elif plan.kind is TransformKind.REAL_INVERSE:
        ilengths[0] = ilengths[0] // 2 + 1
    return tuple(ilengths), tuple(olengths)


def plan_layouts(plan: Plan) -> Tuple[Layout, Layout]:
    """Row-major input and output layouts described by a plan."""
    desc = plan.description
    ilengths, olengths = engine_io_lengths(plan)
    layouts = []
    for lengths, strides, dist, array_type, offsets in (
        (ilengths, desc.istride, desc.idist, desc.itype, desc.ioffset),
        (olengths, desc.ostride, desc.odist, desc.otype, desc.ooffset),
    ):
        layouts.append(
            EngineLayout(
                lengths=lengths,
                strides=strides,
                distance=dist,
                array_type=array_type,
                batch=plan.batch,
                offset=offsets[0] if offsets else 0,
            ).row_major()
        )
    return layouts[0], layouts[1]
