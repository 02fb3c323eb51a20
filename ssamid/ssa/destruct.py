# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Translate out of SSA form, in place.

1. Split every edge that enters a phi block from a block with several
   successors, so each phi operand gets a predecessor of its own to hold the
   copies.
2. For each predecessor, the phis of its successor form one parallel copy.
   It is sequentialized before the terminator: a copy is emitted once no
   other pending copy still reads its destination; when only cycles remain
   (the swap problem), one destination is saved to a temporary first.
3. Drop the phis and map every versioned name back to a plain name. A base
   with a single surviving version keeps its plain name; otherwise versions
   become `name_<version>`, skipping names already taken.

Phi operands bound to the undefined sentinel produce no copy. Any other
remaining sentinel use reads as 0, which is what an unassigned variable
holds at run time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Set, Tuple

from ..errors import InvariantViolation
from ..ir import Const, Copy, Function, Operand, Phi, Undef, Var, instr_dest, instr_uses, rewrite_uses, set_dest

LOG = logging.getLogger(__name__)


@dataclass
class DestructResult:
	split_edges: int = 0
	copies: int = 0
	temporaries: int = 0
	phis_removed: int = 0


def sequentialize(copies: List[Tuple[Var, Operand]], make_temp: Callable[[Var], Var]) -> List[Copy]:
	"""
	Order a parallel copy `dest_i <- src_i` (all reads before all writes) into
	sequential `Copy` instructions with the same effect.
	"""
	pending = [(d, s) for d, s in copies if d != s]
	out: List[Copy] = []
	while pending:
		sources = {s for _, s in pending}
		for i, (d, s) in enumerate(pending):
			if d not in sources:
				out.append(Copy(dest=d, src=s))
				del pending[i]
				break
		else:
			d, _ = pending[0]
			tmp = make_temp(d)
			out.append(Copy(dest=tmp, src=d))
			pending = [(dd, tmp if ss == d else ss) for dd, ss in pending]
	return out


class SSADestructor:
	def run(self, func: Function) -> DestructResult:
		if not func.ssa:
			raise InvariantViolation(f"function {func.name} is not in SSA form", function=func.name)
		result = DestructResult()

		for name in list(func.blocks):
			block = func.blocks[name]
			if not block.phis():
				continue
			for p in list(block.preds):
				if len(func.block(p).successors()) > 1:
					func.split_edge(p, name)
					result.split_edges += 1

		temps = 0

		def make_temp(dest: Var) -> Var:
			nonlocal temps
			temps += 1
			return func.fresh_var(dest.name)

		for name in list(func.blocks):
			block = func.blocks[name]
			phis = block.phis()
			if not phis:
				continue
			for p in block.preds:
				pairs = []
				for phi in phis:
					value = phi.value_from(p)
					if isinstance(value, Undef):
						continue
					pairs.append((phi.dest, value))
				seq = sequentialize(pairs, make_temp)
				func.block(p).instructions.extend(seq)
				result.copies += len(seq)
			block.instructions = [i for i in block.instructions if not isinstance(i, Phi)]
			result.phis_removed += len(phis)
		result.temporaries = temps

		self._unversion(func)
		func.ssa = False
		func.versions = {}
		LOG.debug(
			"%s: destructed %d phis with %d copies (%d temporaries, %d split edges)",
			func.name, result.phis_removed, result.copies, result.temporaries, result.split_edges,
		)
		return result

	def _unversion(self, func: Function) -> None:
		seen: Dict[str, Set[int]] = {}
		for _, node in func.all_nodes():
			dest = instr_dest(node)
			operands = [dest] if dest is not None else []
			for var in operands + instr_uses(node):
				if isinstance(var, Var) and var.version is not None:
					seen.setdefault(var.name, set()).add(var.version)
		for p in func.params:
			seen.setdefault(p, set()).add(0)

		taken: Set[str] = set(seen) | set(func.params)
		mapping: Dict[Tuple[str, int], str] = {}
		for base in seen:
			versions = sorted(seen[base])
			if len(versions) == 1:
				mapping[(base, versions[0])] = base
				continue
			for v in versions:
				if v == 0:
					mapping[(base, v)] = base
					continue
				candidate = f"{base}_{v}"
				while candidate in taken:
					candidate += "_"
				taken.add(candidate)
				mapping[(base, v)] = candidate

		def rename(op: Operand) -> Operand:
			if isinstance(op, Undef):
				return Const(0)
			if isinstance(op, Var) and op.version is not None:
				return Var(mapping[(op.name, op.version)])
			return op

		for _, node in func.all_nodes():
			rewrite_uses(node, rename)
			dest = instr_dest(node)
			if dest is not None and dest.version is not None:
				set_dest(node, Var(mapping[(dest.name, dest.version)]))


def destruct_ssa(func: Function) -> DestructResult:
	return SSADestructor().run(func)


__all__ = ["DestructResult", "SSADestructor", "sequentialize", "destruct_ssa"]
