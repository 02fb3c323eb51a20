# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
ssamid: an SSA middle-end for a small three-address IR.

Pipeline placement:
  text (lark parser) → CFG → dominators → SSA → const-prop / LICM → SSA destruction → text

The passes mutate `ir.Function` objects in place; analyses are snapshots and
are recomputed after any structural change.
"""

from .errors import (
	CompileError,
	InterpError,
	InvariantViolation,
	ParseError,
	StructuralError,
	UndefinedValueError,
	UnsupportedOpcodeError,
)
from .ir import Function, Program
from .pipeline import PipelineOptions, PipelineResult, run_pipeline

__version__ = "0.1.0"

__all__ = [
	"CompileError",
	"InterpError",
	"InvariantViolation",
	"ParseError",
	"StructuralError",
	"UndefinedValueError",
	"UnsupportedOpcodeError",
	"Function",
	"Program",
	"PipelineOptions",
	"PipelineResult",
	"run_pipeline",
]
