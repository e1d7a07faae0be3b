"""Validate, size-check, execute, marshal and compare one configuration.

    VALIDATING -> SIZE_CHECKING -> EXECUTING -> MARSHALING -> COMPARING
        -> PASSED | FAILED | SKIPPED

Unsupported configurations and memory-budget overruns end in SKIPPED before
any device-engine call. Engine statuses and allocation failures end in FAILED
with every resource released. The CPU reference runs on a per-configuration
executor and is only awaited where its data is needed.
"""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from .adapter import DeviceExecution
from .backend.base import DeviceEngine
from .backend.registry import get_engine
from .config import OracleSettings
from .errors import AllocationFailure, EngineFailure, UnsupportedConfiguration
from .layout import compute_layouts
from .marshal import marshal
from .memory import estimate_session_bytes, estimate_transform_bytes, fits_budget
from .oracle import distance, evaluate, l2_relative_bound, linf_cutoff, norm
from .placement import validate
from .reference import ReferenceResult, compute_reference
from .report import DiagnosticContext, Outcome, State
from .types import TransformConfig


class _Run:
    """Mutable bookkeeping for one configuration's pass through the states."""

    def __init__(self, config: TransformConfig, settings: OracleSettings):
        self.config = config
        self.settings = settings
        self.trace: List[State] = []
        self.context: Optional[DiagnosticContext] = None

    def enter(self, state: State) -> None:
        self.trace.append(state)
        self.log(2, state.value)

    def log(self, level: int, msg: str) -> None:
        if self.settings.verbose >= level:
            print(f"[oracle][{self.config.kind.value} {self.config.shape}] {msg}", file=sys.stderr)

    def finish(self, state: State, reason: str = "", metrics: Optional[dict] = None) -> Outcome:
        self.trace.append(state)
        outcome = Outcome(
            state=state,
            reason=reason,
            context=self.context,
            metrics=metrics or {},
            trace=tuple(self.trace),
        )
        self.log(1, outcome.describe())
        return outcome


def run_transform(
    config: TransformConfig,
    engine: Optional[DeviceEngine] = None,
    settings: Optional[OracleSettings] = None,
    reference: Optional[ReferenceResult] = None,
) -> Outcome:
    """Check one configuration of the device engine against the CPU reference."""
    settings = settings or OracleSettings()
    run = _Run(config, settings)

    run.enter(State.VALIDATING)
    try:
        layouts = compute_layouts(config)
        run.context = DiagnosticContext.from_layouts(config, layouts)
        validate(config, layouts)
    except UnsupportedConfiguration as exc:
        return run.finish(State.SKIPPED, exc.reason)

    run.enter(State.SIZE_CHECKING)
    for estimate in (
        estimate_session_bytes(config.shape, config.kind, config.precision),
        estimate_transform_bytes(config, layouts),
    ):
        run.log(2, f"required memory (GB): {estimate.total * 1e-9:.6g}")
        if not fits_budget(estimate, settings.ram_gb):
            return run.finish(
                State.SKIPPED,
                f"needs {estimate.total * 1e-9:.6g} GB, budget {settings.ram_gb:g} GB",
            )

    if engine is None:
        engine = get_engine(settings.engine)

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="fft-oracle") as pool:
        if reference is None:
            reference = compute_reference(
                config.shape,
                config.batch,
                config.precision,
                config.kind,
                executor=pool,
                seed=settings.seed,
            )
        return _execute_and_compare(run, engine, layouts, reference, pool)


def _await(future, what: str):
    """Result of a background computation; host exhaustion becomes an AllocationFailure."""
    try:
        return future.result()
    except MemoryError as exc:
        raise AllocationFailure(what) from exc


def _allocation_failed(run: _Run, exc: AllocationFailure) -> Outcome:
    return run.finish(State.FAILED, str(exc), {"allocation": exc.what, "bytes": exc.nbytes})


def _execute_and_compare(run: _Run, engine, layouts, reference: ReferenceResult, pool) -> Outcome:
    config = run.config
    settings = run.settings
    run.enter(State.EXECUTING)
    try:
        with DeviceExecution(engine, config, layouts) as execution:
            execution.prepare()
            run.log(3, f"work buffer bytes: {execution.work_bytes}")
            device_input = marshal(
                _await(reference.input, "reference input"),
                reference.input_layout,
                layouts.input,
                config.precision,
            )
            execution.execute(device_input)
            run.enter(State.MARSHALING)
            device_output = execution.download()
    except UnsupportedConfiguration as exc:
        return run.finish(State.SKIPPED, exc.reason)
    except EngineFailure as exc:
        return run.finish(State.FAILED, f"device engine failure: {exc}", {"call": exc.call})
    except AllocationFailure as exc:
        return _allocation_failed(run, exc)

    device_norm = pool.submit(norm, device_output, layouts.output)

    run.enter(State.COMPARING)
    try:
        output_norm = _await(reference.output_norm, "reference output norm")
        epsilon = settings.epsilon(config.precision)
        cutoff = linf_cutoff(config.precision, output_norm.l_inf, config.total_length, epsilon)
        bound = l2_relative_bound(config.precision, config.total_length, epsilon)
        diff = distance(
            _await(reference.output, "reference output"),
            reference.output_layout,
            device_output,
            layouts.output,
            cutoff,
        )
        verdict = evaluate(
            _await(reference.input_norm, "reference input norm"),
            output_norm,
            _await(device_norm, "device output norm"),
            diff,
            cutoff,
            bound,
        )
    except AllocationFailure as exc:
        return _allocation_failed(run, exc)
    if verdict.passed:
        return run.finish(State.PASSED, metrics=verdict.metrics)
    return run.finish(State.FAILED, verdict.reason, verdict.metrics)
