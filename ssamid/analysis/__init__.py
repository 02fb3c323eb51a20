# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""CFG analyses: dominators, dominance frontiers and natural loops."""

from .dom import DominanceFrontierAnalysis, DominanceFrontierInfo, DominatorAnalysis, DominatorInfo
from .loops import LoopAnalysis, LoopForest, NaturalLoop

__all__ = [
	"DominatorAnalysis",
	"DominatorInfo",
	"DominanceFrontierAnalysis",
	"DominanceFrontierInfo",
	"LoopAnalysis",
	"LoopForest",
	"NaturalLoop",
]
