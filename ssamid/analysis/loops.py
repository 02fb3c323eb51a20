# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Natural loop detection and the loop nesting forest.

A back edge is an edge t -> h where h dominates t. The natural loop of h is h
plus every block that reaches one of its latches without passing through h.
Back edges sharing a header form one loop. Retreating edges whose target does
not dominate the source mark irreducible control flow; they are recorded and
otherwise left alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..cfg import predecessor_map
from ..ir import Function
from .dom import DominatorInfo

LOG = logging.getLogger(__name__)


@dataclass(eq=False)
class NaturalLoop:
	header: str
	blocks: Set[str]
	latches: List[str] = field(default_factory=list)
	parent: Optional["NaturalLoop"] = None
	children: List["NaturalLoop"] = field(default_factory=list)

	@property
	def depth(self) -> int:
		d = 1
		p = self.parent
		while p is not None:
			d += 1
			p = p.parent
		return d

	def contains(self, block: str) -> bool:
		return block in self.blocks

	def exits(self, func: Function) -> List[Tuple[str, str]]:
		"""Edges leaving the loop, as (inside, outside) pairs."""
		out: List[Tuple[str, str]] = []
		for name in sorted(self.blocks):
			for succ in func.block(name).successors():
				if succ not in self.blocks:
					out.append((name, succ))
		return out


@dataclass
class LoopForest:
	loops: List[NaturalLoop] = field(default_factory=list)
	irreducible_edges: List[Tuple[str, str]] = field(default_factory=list)

	def roots(self) -> List[NaturalLoop]:
		return [l for l in self.loops if l.parent is None]

	def innermost_first(self) -> List[NaturalLoop]:
		return sorted(self.loops, key=lambda l: -l.depth)

	def loop_for_header(self, header: str) -> Optional[NaturalLoop]:
		for loop in self.loops:
			if loop.header == header:
				return loop
		return None

	def innermost_loop_of(self, block: str) -> Optional[NaturalLoop]:
		best: Optional[NaturalLoop] = None
		for loop in self.loops:
			if block in loop.blocks and (best is None or len(loop.blocks) < len(best.blocks)):
				best = loop
		return best


class LoopAnalysis:
	def compute(self, func: Function, dom_info: DominatorInfo) -> LoopForest:
		order = {b: i for i, b in enumerate(dom_info.rpo)}
		live = set(dom_info.rpo)
		preds = predecessor_map(func, within=live)

		latches: Dict[str, List[str]] = {}
		irreducible: List[Tuple[str, str]] = []
		for b in dom_info.rpo:
			for succ in func.block(b).successors():
				if dom_info.dominates(succ, b):
					latches.setdefault(succ, []).append(b)
				elif order[succ] <= order[b]:
					irreducible.append((b, succ))
		if irreducible:
			LOG.debug("%s: irreducible edges ignored: %s", func.name, irreducible)

		loops: List[NaturalLoop] = []
		for header in sorted(latches, key=lambda h: order[h]):
			body = {header}
			work = [t for t in latches[header] if t != header]
			body.update(work)
			while work:
				b = work.pop()
				for p in preds[b]:
					if p not in body:
						body.add(p)
						work.append(p)
			loops.append(NaturalLoop(header=header, blocks=body, latches=list(latches[header])))

		# Parent = smallest other loop strictly containing this one.
		for loop in loops:
			candidates = [
				other for other in loops
				if other is not loop and loop.header in other.blocks and loop.blocks <= other.blocks
			]
			if candidates:
				parent = min(candidates, key=lambda l: len(l.blocks))
				loop.parent = parent
				parent.children.append(loop)
		return LoopForest(loops=loops, irreducible_edges=irreducible)


__all__ = ["NaturalLoop", "LoopForest", "LoopAnalysis"]
