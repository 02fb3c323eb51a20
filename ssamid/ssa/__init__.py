# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""SSA construction, optional cleanup and destruction."""

from .builder import SSABuilder, SsaFunc, build_ssa
from .cleanup import prune_dead_phis
from .destruct import DestructResult, SSADestructor, destruct_ssa, sequentialize

__all__ = [
	"SSABuilder",
	"SsaFunc",
	"build_ssa",
	"prune_dead_phis",
	"DestructResult",
	"SSADestructor",
	"destruct_ssa",
	"sequentialize",
]
