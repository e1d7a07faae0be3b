from .config import OracleSettings
from .errors import AllocationFailure, EngineFailure, UnsupportedConfiguration
from .layout import LayoutPair, compute_distance, compute_layouts, compute_strides, input_lengths, output_lengths
from .marshal import allocate_host_buffer, copy_buffers, gather, marshal, scatter
from .memory import MemoryEstimate, estimate_session_bytes, estimate_transform_bytes, fits_budget
from .oracle import distance, evaluate, l2_relative_bound, linf_cutoff, norm
from .orchestrator import run_transform
from .placement import placement_rejection, validate
from .reference import ReferenceResult, compute_reference
from .report import DiagnosticContext, Outcome, State
from .types import (
    ArrayType,
    ComparisonResult,
    Layout,
    NormPair,
    Placement,
    Precision,
    TransformConfig,
    TransformKind,
)

__all__ = [
    "AllocationFailure",
    "ArrayType",
    "ComparisonResult",
    "DiagnosticContext",
    "EngineFailure",
    "Layout",
    "LayoutPair",
    "MemoryEstimate",
    "NormPair",
    "OracleSettings",
    "Outcome",
    "Placement",
    "Precision",
    "ReferenceResult",
    "State",
    "TransformConfig",
    "TransformKind",
    "UnsupportedConfiguration",
    "allocate_host_buffer",
    "compute_distance",
    "compute_layouts",
    "compute_reference",
    "compute_strides",
    "copy_buffers",
    "distance",
    "estimate_session_bytes",
    "estimate_transform_bytes",
    "evaluate",
    "fits_budget",
    "gather",
    "input_lengths",
    "l2_relative_bound",
    "linf_cutoff",
    "marshal",
    "norm",
    "output_lengths",
    "placement_rejection",
    "run_transform",
    "scatter",
    "validate",
]
