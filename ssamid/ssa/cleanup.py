# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Optional SSA cleanup: remove phis whose value never reaches a non-phi use."""

from __future__ import annotations

import logging
from typing import Dict, List, Set

from ..ir import Function, Phi, Var, instr_uses

LOG = logging.getLogger(__name__)


def prune_dead_phis(func: Function) -> int:
	"""Delete dead phis (including cycles of phis feeding only each other); returns the count."""
	phis: Dict[Var, Phi] = {}
	live: Set[Var] = set()
	for block in func.blocks.values():
		for node in block.nodes():
			if isinstance(node, Phi):
				phis[node.dest] = node
				continue
			for u in instr_uses(node):
				if isinstance(u, Var):
					live.add(u)

	work: List[Var] = [v for v in live if v in phis]
	while work:
		v = work.pop()
		for u in instr_uses(phis[v]):
			if isinstance(u, Var) and u in phis and u not in live:
				live.add(u)
				work.append(u)

	removed = 0
	for block in func.blocks.values():
		kept = []
		for instr in block.instructions:
			if isinstance(instr, Phi) and instr.dest not in live:
				removed += 1
				continue
			kept.append(instr)
		block.instructions = kept
	if removed:
		LOG.debug("%s: pruned %d dead phis", func.name, removed)
	return removed


__all__ = ["prune_dead_phis"]
