from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .layout import LayoutPair
from .types import TransformConfig


class State(Enum):
    VALIDATING = "validating"
    SIZE_CHECKING = "size_checking"
    EXECUTING = "executing"
    MARSHALING = "marshaling"
    COMPARING = "comparing"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class DiagnosticContext:
    """Fully resolved parameters behind an outcome, in engine axis order."""

    ilength: Tuple[int, ...]
    istride: Tuple[int, ...]
    idist: int
    olength: Tuple[int, ...]
    ostride: Tuple[int, ...]
    odist: int
    batch: int
    placement: str
    itype: str
    otype: str
    precision: str
    kind: str

    @classmethod
    def from_layouts(cls, config: TransformConfig, layouts: LayoutPair) -> "DiagnosticContext":
        ilayout, olayout = layouts.engine_view()
        return cls(
            ilength=ilayout.lengths,
            istride=ilayout.strides,
            idist=ilayout.distance,
            olength=olayout.lengths,
            ostride=olayout.strides,
            odist=olayout.distance,
            batch=config.batch,
            placement=config.placement.value,
            itype=config.itype.value,
            otype=config.otype.value,
            precision=config.precision.value,
            kind=config.kind.value,
        )

    def as_dict(self) -> dict:
        return asdict(self)

    def describe(self) -> str:
        def _seq(values: Tuple[int, ...]) -> str:
            return " ".join(str(v) for v in values)

        return "\n".join(
            [
                "device params:",
                f"\tilength: {_seq(self.ilength)}",
                f"\tistride: {_seq(self.istride)}",
                f"\tidist: {self.idist}",
                f"\tolength: {_seq(self.olength)}",
                f"\tostride: {_seq(self.ostride)}",
                f"\todist: {self.odist}",
                f"\tbatch: {self.batch}",
                f"\t{self.placement.replace('_', '-')}",
                f"\t{self.itype} -> {self.otype}",
                f"\t{self.kind}, {self.precision}-precision",
            ]
        )


@dataclass(frozen=True)
class Outcome:
    """Result of one configuration: passed, failed or skipped."""

    state: State
    reason: str = ""
    context: Optional[DiagnosticContext] = None
    metrics: dict = field(default_factory=dict)
    trace: Tuple[State, ...] = ()

    @property
    def passed(self) -> bool:
        return self.state is State.PASSED

    @property
    def failed(self) -> bool:
        return self.state is State.FAILED

    @property
    def skipped(self) -> bool:
        return self.state is State.SKIPPED

    def describe(self) -> str:
        lines = [f"{self.state.value}" + (f": {self.reason}" if self.reason else "")]
        if self.context is not None and not self.passed:
            lines.append(self.context.describe())
        return "\n".join(lines)
