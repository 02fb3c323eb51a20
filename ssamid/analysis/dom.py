# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Dominator and dominance-frontier analysis.

Dominators come from the classic iterative dataflow formulation run in
reverse postorder:
  - dom(entry) = {entry}
  - dom(b) = all reachable blocks initially
  - dom(b) = {b} ∪ (⋂_{p ∈ preds(b)} dom(p)) until nothing changes

Blocks unreachable from entry take no part: they have no dominator set, no
idom, and never appear in a frontier. Results are snapshots; any structural
change to the CFG requires computing them again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from ..cfg import predecessor_map, reverse_postorder
from ..errors import StructuralError
from ..ir import Function

LOG = logging.getLogger(__name__)


@dataclass
class DominatorInfo:
	"""
	idom[block] = immediate dominator, None for the entry.
	doms[block] = full dominator set (the block itself included).
	"""

	entry: str
	idom: Dict[str, Optional[str]] = field(default_factory=dict)
	doms: Dict[str, Set[str]] = field(default_factory=dict)
	rpo: List[str] = field(default_factory=list)
	_children: Dict[str, List[str]] = field(default_factory=dict, init=False, repr=False)

	def __post_init__(self) -> None:
		self._children = {b: [] for b in self.rpo}
		for b in self.rpo:
			parent = self.idom.get(b)
			if parent is not None:
				self._children[parent].append(b)

	def is_reachable(self, block: str) -> bool:
		return block in self.doms

	def dominates(self, a: str, b: str) -> bool:
		return a in self.doms.get(b, ())

	def strictly_dominates(self, a: str, b: str) -> bool:
		return a != b and self.dominates(a, b)

	def children(self, block: str) -> List[str]:
		"""Dominator-tree children, in reverse postorder."""
		return list(self._children.get(block, []))

	def preorder(self) -> List[str]:
		"""Dominator-tree preorder from the entry, without recursion."""
		out: List[str] = []
		stack = [self.entry]
		while stack:
			b = stack.pop()
			out.append(b)
			stack.extend(reversed(self._children[b]))
		return out


@dataclass
class DominanceFrontierInfo:
	"""
	df[block] = set of blocks in its dominance frontier.

	b is in DF(x) iff x dominates a predecessor of b but does not strictly
	dominate b.
	"""

	df: Dict[str, Set[str]] = field(default_factory=dict)

	def iterated(self, blocks: Iterable[str]) -> Set[str]:
		"""Iterated dominance frontier DF+(blocks)."""
		result: Set[str] = set()
		work = [b for b in blocks if b in self.df]
		seen = set(work)
		while work:
			b = work.pop()
			for y in self.df[b]:
				if y in result:
					continue
				result.add(y)
				if y not in seen:
					seen.add(y)
					work.append(y)
		return result


class DominatorAnalysis:
	"""Compute dominator sets and immediate dominators for a function's CFG."""

	def compute(self, func: Function) -> DominatorInfo:
		rpo = reverse_postorder(func)
		live = set(rpo)
		preds = predecessor_map(func, within=live)
		entry = func.entry

		doms: Dict[str, Set[str]] = {b: set(live) for b in rpo}
		doms[entry] = {entry}

		# Each pass either shrinks some set or terminates; more passes than
		# blocks means the graph is not what it claims to be.
		limit = len(rpo) + 2
		passes = 0
		changed = True
		while changed:
			passes += 1
			if passes > limit:
				raise StructuralError(
					f"function {func.name}: dominator computation did not converge after {limit} passes",
					function=func.name,
				)
			changed = False
			for b in rpo:
				if b == entry:
					continue
				ps = preds[b]
				if not ps:
					new = {b}
				else:
					new = set(doms[ps[0]])
					for p in ps[1:]:
						new &= doms[p]
					new.add(b)
				if new != doms[b]:
					doms[b] = new
					changed = True

		idom: Dict[str, Optional[str]] = {entry: None}
		for b in rpo:
			if b == entry:
				continue
			strict = doms[b] - {b}
			# Dominators form a chain; the closest one has the largest set.
			idom[b] = max(strict, key=lambda d: len(doms[d]))
		LOG.debug("%s: dominators converged in %d passes over %d blocks", func.name, passes, len(rpo))
		return DominatorInfo(entry=entry, idom=idom, doms=doms, rpo=rpo)


class DominanceFrontierAnalysis:
	"""
	Compute dominance frontiers from an existing dominator table.

	For every block b and each reachable predecessor p, walk up the dominator
	tree from p until reaching idom(b); every block passed has b in its
	frontier.
	"""

	def compute(self, func: Function, dom_info: DominatorInfo) -> DominanceFrontierInfo:
		live = set(dom_info.rpo)
		preds = predecessor_map(func, within=live)
		df: Dict[str, Set[str]] = {b: set() for b in dom_info.rpo}
		for b in dom_info.rpo:
			stop = dom_info.idom[b]
			for p in preds[b]:
				runner: Optional[str] = p
				while runner is not None and runner != stop:
					df[runner].add(b)
					runner = dom_info.idom[runner]
		return DominanceFrontierInfo(df=df)


__all__ = [
	"DominatorInfo",
	"DominanceFrontierInfo",
	"DominatorAnalysis",
	"DominanceFrontierAnalysis",
]
