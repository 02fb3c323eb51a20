# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""SSA optimizations: constant propagation and loop-invariant code motion."""

from .const_prop import BOTTOM, TOP, ConstantPropagation, ConstPropReport, ConstPropResult, LatticeValue, propagate_constants
from .licm import LoopInvariantCodeMotion, LoopInvariantReport, hoist_loop_invariants

__all__ = [
	"BOTTOM",
	"TOP",
	"LatticeValue",
	"ConstantPropagation",
	"ConstPropReport",
	"ConstPropResult",
	"propagate_constants",
	"LoopInvariantCodeMotion",
	"LoopInvariantReport",
	"hoist_loop_invariants",
]
