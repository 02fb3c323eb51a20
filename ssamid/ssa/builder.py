# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Convert a three-address function into SSA form, in place.

Steps:
  1. Drop unreachable blocks and make sure the entry has no predecessors.
  2. Compute dominators and dominance frontiers.
  3. Place phis: for each variable, at the iterated dominance frontier of the
     blocks assigning it (minimal SSA; parameters count as assigned in entry).
  4. Rename along the dominator tree with one definition stack per variable.
     The walk uses an explicit work stack of (block, leaving) pairs, so deep
     CFGs do not hit the recursion limit.

Parameters are version 0; every other definition gets a fresh version from
`Function.fresh_var`. A use with no reaching definition becomes `UNDEF`, or
raises `UndefinedValueError` under the `error` policy (phi operands always
take the sentinel, since a missing definition on one edge is normal).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from ..analysis.dom import (
	DominanceFrontierAnalysis,
	DominanceFrontierInfo,
	DominatorAnalysis,
	DominatorInfo,
)
from ..cfg import ensure_entry_has_no_preds, remove_unreachable
from ..errors import InvariantViolation, UndefinedValueError
from ..ir import UNDEF, Function, Operand, Phi, PhiArg, Var, instr_dest, rewrite_uses, set_dest
from .cleanup import prune_dead_phis

LOG = logging.getLogger(__name__)

UNDEFINED_POLICIES = ("sentinel", "error")


@dataclass
class SsaFunc:
	"""Result of SSA construction: the rewritten function and the analyses it used."""

	func: Function
	dom: DominatorInfo
	frontier: DominanceFrontierInfo
	phi_count: int = 0
	pruned_phis: int = 0
	# (block, variable) for every use bound to the undefined sentinel.
	undefined_uses: List[Tuple[str, str]] = field(default_factory=list)


class SSABuilder:
	def __init__(self, undefined_policy: str = "sentinel", prune_dead_phis: bool = False) -> None:
		if undefined_policy not in UNDEFINED_POLICIES:
			raise ValueError(f"unknown undefined-value policy '{undefined_policy}'")
		self.undefined_policy = undefined_policy
		self.prune_dead_phis = prune_dead_phis

	def run(self, func: Function) -> SsaFunc:
		if func.ssa:
			raise InvariantViolation(f"function {func.name} is already in SSA form", function=func.name)
		remove_unreachable(func)
		ensure_entry_has_no_preds(func)
		func.link()

		dom = DominatorAnalysis().compute(func)
		frontier = DominanceFrontierAnalysis().compute(func, dom)

		phi_count = self._place_phis(func, dom, frontier)
		undefined = self._rename(func, dom)
		func.ssa = True

		pruned = prune_dead_phis(func) if self.prune_dead_phis else 0
		LOG.debug("%s: placed %d phis (%d pruned)", func.name, phi_count, pruned)
		return SsaFunc(
			func=func,
			dom=dom,
			frontier=frontier,
			phi_count=phi_count - pruned,
			pruned_phis=pruned,
			undefined_uses=undefined,
		)

	def _place_phis(self, func: Function, dom: DominatorInfo, frontier: DominanceFrontierInfo) -> int:
		# Variables in first-definition order keep phi order deterministic.
		order: List[str] = []
		defsites: Dict[str, Set[str]] = {}
		for p in func.params:
			order.append(p)
			defsites[p] = {func.entry}
		for b in dom.rpo:
			for instr in func.blocks[b].instructions:
				dest = instr_dest(instr)
				if dest is None:
					continue
				if dest.name not in defsites:
					order.append(dest.name)
					defsites[dest.name] = set()
				defsites[dest.name].add(b)

		placed: Dict[str, List[Phi]] = {}
		count = 0
		for var in order:
			for b in sorted(frontier.iterated(defsites[var]), key=dom.rpo.index):
				block = func.blocks[b]
				phi = Phi(dest=Var(var), incoming=[PhiArg(p, Var(var)) for p in block.preds])
				placed.setdefault(b, []).append(phi)
				count += 1
		for b, phis in placed.items():
			block = func.blocks[b]
			block.instructions = phis + block.instructions
		return count

	def _rename(self, func: Function, dom: DominatorInfo) -> List[Tuple[str, str]]:
		stacks: Dict[str, List[Var]] = {}
		func.versions = {}
		for p in func.params:
			stacks[p] = [Var(p, 0)]
			func.versions[p] = 0
		undefined: List[Tuple[str, str]] = []

		def lookup(operand: Operand, block: str, in_phi: bool) -> Operand:
			if not isinstance(operand, Var):
				return operand
			stack = stacks.get(operand.name)
			if stack:
				return stack[-1]
			if self.undefined_policy == "error" and not in_phi:
				raise UndefinedValueError(
					f"function {func.name}: '{operand.name}' is used in block {block} before any definition",
					function=func.name,
					block=block,
					variable=operand.name,
				)
			undefined.append((block, operand.name))
			return UNDEF

		pushed: Dict[str, List[str]] = {}
		work: List[Tuple[str, bool]] = [(func.entry, False)]
		while work:
			name, leaving = work.pop()
			if leaving:
				for var in pushed.pop(name):
					stacks[var].pop()
				continue

			block = func.blocks[name]
			defined: List[str] = []
			for instr in block.instructions:
				if not isinstance(instr, Phi):
					rewrite_uses(instr, lambda u: lookup(u, name, False))
				dest = instr_dest(instr)
				if dest is not None:
					new = func.fresh_var(dest.name)
					set_dest(instr, new)
					stacks.setdefault(dest.name, []).append(new)
					defined.append(dest.name)
			if block.terminator is not None:
				rewrite_uses(block.terminator, lambda u: lookup(u, name, False))

			for succ in block.successors():
				for phi in func.blocks[succ].phis():
					phi.set_value(name, lookup(Var(phi.dest.name), name, True))

			pushed[name] = defined
			work.append((name, True))
			for child in reversed(dom.children(name)):
				work.append((child, False))
		return undefined


def build_ssa(func: Function, undefined_policy: str = "sentinel", prune_phis: bool = False) -> SsaFunc:
	return SSABuilder(undefined_policy=undefined_policy, prune_dead_phis=prune_phis).run(func)


__all__ = ["SsaFunc", "SSABuilder", "build_ssa", "UNDEFINED_POLICIES"]
