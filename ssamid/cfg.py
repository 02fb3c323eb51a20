# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
CFG utilities: traversal orders, reachability and structural rewrites.

Every rewrite here goes through the edge helpers on `Function`, so phi operand
lists stay aligned with predecessor lists after each call.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set, Tuple

from .errors import StructuralError
from .ir import UNDEF, BasicBlock, Function, Jump, Phi, PhiArg, Var, retarget

LOG = logging.getLogger(__name__)


def _check_entry(func: Function) -> None:
	if func.entry not in func.blocks:
		raise StructuralError(f"function {func.name}: entry block '{func.entry}' does not exist", function=func.name)


def reverse_postorder(func: Function) -> List[str]:
	"""Blocks reachable from entry in reverse postorder (iterative DFS)."""
	_check_entry(func)
	visited: Set[str] = {func.entry}
	post: List[str] = []
	stack: List[Tuple[str, Iterable[str]]] = [(func.entry, iter(func.block(func.entry).successors()))]
	while stack:
		name, succs = stack[-1]
		for succ in succs:
			if succ not in visited:
				visited.add(succ)
				stack.append((succ, iter(func.block(succ).successors())))
				break
		else:
			stack.pop()
			post.append(name)
	post.reverse()
	return post


def reachable(func: Function) -> Set[str]:
	return set(reverse_postorder(func))


def predecessor_map(func: Function, within: Optional[Set[str]] = None) -> dict:
	"""Predecessors derived from terminators, optionally restricted to `within`."""
	preds = {name: [] for name in func.blocks if within is None or name in within}
	for name, block in func.blocks.items():
		if within is not None and name not in within:
			continue
		for succ in block.successors():
			if succ not in func.blocks:
				raise StructuralError(f"function {func.name}: block '{name}' targets unknown block '{succ}'", function=func.name, block=name)
			if succ in preds:
				preds[succ].append(name)
	return preds


def remove_unreachable(func: Function) -> List[str]:
	"""Delete blocks not reachable from entry; returns their names."""
	live = reachable(func)
	dead = [name for name in func.blocks if name not in live]
	for name in dead:
		func.delete_block(name)
	if dead:
		LOG.debug("%s: removed unreachable blocks %s", func.name, ", ".join(dead))
	return dead


def ensure_entry_has_no_preds(func: Function) -> Optional[str]:
	"""
	Give the function an entry block with no predecessors.

	When the current entry is a branch target, a fresh block jumping to it
	becomes the new entry. Phis already in the old entry receive the parameter
	value (version 0) or the undefined sentinel for the new edge.
	"""
	_check_entry(func)
	old = func.block(func.entry)
	if not old.preds:
		return None
	label = func.fresh_label("entry")
	new = BasicBlock(name=label, instructions=[], terminator=Jump(old.name), preds=[])
	func.insert_block(new, before=old.name)
	old.preds.append(label)
	for phi in old.phis():
		value = Var(phi.dest.name, 0) if phi.dest.name in func.params else UNDEF
		phi.incoming.append(PhiArg(label, value))
	func.entry = label
	LOG.debug("%s: synthesized entry block %s", func.name, label)
	return label


def critical_edges(func: Function) -> List[Tuple[str, str]]:
	"""Edges whose source has several successors and whose target has several predecessors."""
	out: List[Tuple[str, str]] = []
	for name, block in func.blocks.items():
		succs = block.successors()
		if len(succs) < 2:
			continue
		for succ in succs:
			if len(func.block(succ).preds) > 1:
				out.append((name, succ))
	return out


def split_critical_edges(func: Function, only_phi_targets: bool = False) -> List[str]:
	"""Split critical edges; with `only_phi_targets`, only those entering a block with phis."""
	created: List[str] = []
	for src, dst in critical_edges(func):
		if only_phi_targets and not func.block(dst).phis():
			continue
		created.append(func.split_edge(src, dst).name)
	return created


def insert_preheader(func: Function, header: str, loop_blocks: Set[str]) -> Tuple[str, bool]:
	"""
	Return a block that is the sole entry from outside the loop into `header`.

	An existing block is reused when it is the only outside predecessor, jumps
	nowhere but the header, and has a single predecessor itself. Otherwise a
	new `<header>.preheader` block is placed on the entering edges. Returns
	`(name, created)`.

	With several outside predecessors, header phis whose outside operands
	differ are split: the preheader gets a phi over the outside operands, and
	the header phi takes that phi's value from the preheader.
	"""
	head = func.block(header)
	outside = [p for p in head.preds if p not in loop_blocks]
	if not outside:
		raise StructuralError(f"function {func.name}: loop header '{header}' has no entering edge", function=func.name, block=header)
	if len(outside) == 1:
		cand = func.block(outside[0])
		if cand.successors() == [header] and len(cand.preds) == 1:
			return cand.name, False

	label = func.fresh_label(f"{header}.preheader")
	pre = BasicBlock(name=label, instructions=[], terminator=Jump(header), preds=list(outside))
	for p in outside:
		retarget(func.block(p).terminator, header, label)

	for phi in head.phis():
		args = [arg for arg in phi.incoming if arg.block not in loop_blocks]
		values = [arg.value for arg in args]
		if all(v == values[0] for v in values):
			merged = values[0]
		else:
			merged = func.fresh_var(phi.dest.name)
			pre.instructions.append(Phi(dest=merged, incoming=[PhiArg(a.block, a.value) for a in args]))
		kept: List[PhiArg] = []
		placed = False
		for arg in phi.incoming:
			if arg.block in loop_blocks:
				kept.append(arg)
			elif not placed:
				kept.append(PhiArg(label, merged))
				placed = True
		phi.incoming = kept

	new_preds: List[str] = []
	placed = False
	for p in head.preds:
		if p in loop_blocks:
			new_preds.append(p)
		elif not placed:
			new_preds.append(label)
			placed = True
	head.preds = new_preds
	func.insert_block(pre, before=header)
	LOG.debug("%s: synthesized preheader %s for loop at %s", func.name, label, header)
	return label, True


__all__ = [
	"reverse_postorder",
	"reachable",
	"predecessor_map",
	"remove_unreachable",
	"ensure_entry_has_no_preds",
	"critical_edges",
	"split_critical_edges",
	"insert_preheader",
]
