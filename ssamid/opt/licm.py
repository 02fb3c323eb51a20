# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Loop-invariant code motion over SSA.

Loops are processed innermost first. Within a loop, an instruction is
invariant when each operand is a literal, is defined outside the loop, or is
the result of another invariant instruction; the set is grown to a fixpoint
walking the loop blocks in reverse postorder, so discovery order is also a
valid definition order.

Only instructions that cannot fault or touch state are moved:
  - arithmetic, comparison and unary operations with known opcodes
  - `div`/`mod` only by a non-zero literal
  - copies
  - loads, when the loop contains no store and no call
Phis are never moved. The hoisted code lands at the end of the loop's
preheader, which is synthesized when missing; that is a structural change,
so dominators and loops are recomputed before the next loop is handled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Set

from ..analysis.dom import DominatorAnalysis, DominatorInfo
from ..analysis.loops import LoopAnalysis, NaturalLoop
from ..cfg import insert_preheader
from ..errors import InvariantViolation
from ..ir import (
	BinaryOp,
	Call,
	Const,
	Copy,
	Function,
	Instr,
	Load,
	Store,
	UnaryOp,
	Undef,
	Var,
	instr_dest,
	instr_uses,
)
from ..semantics import BINARY_OPS, TRAPPING_OPS, UNARY_OPS
from ..text.printer import format_instr

LOG = logging.getLogger(__name__)


@dataclass
class HoistedInstr:
	dest: str
	source_block: str
	preheader: str
	text: str


@dataclass
class LoopInvariantReport:
	function: str
	loops: int = 0
	preheaders_created: List[str] = field(default_factory=list)
	hoisted: List[HoistedInstr] = field(default_factory=list)

	@property
	def changed(self) -> bool:
		return bool(self.hoisted or self.preheaders_created)

	def format(self) -> str:
		lines = [
			f"licm {self.function}: {self.loops} loops, {len(self.hoisted)} instructions hoisted, "
			f"{len(self.preheaders_created)} preheaders created",
		]
		for h in self.hoisted:
			lines.append(f"  {h.source_block} -> {h.preheader}: {h.text}")
		return "\n".join(lines)


def _is_hoistable(instr: Instr, loop_writes_memory: bool) -> bool:
	if isinstance(instr, BinaryOp):
		if instr.op not in BINARY_OPS:
			return False
		if instr.op in TRAPPING_OPS:
			return isinstance(instr.right, Const) and instr.right.value != 0
		return True
	if isinstance(instr, UnaryOp):
		return instr.op in UNARY_OPS
	if isinstance(instr, Copy):
		return True
	if isinstance(instr, Load):
		return not loop_writes_memory
	return False


class LoopInvariantCodeMotion:
	def run(self, func: Function) -> LoopInvariantReport:
		if not func.ssa:
			raise InvariantViolation(f"LICM needs SSA form ({func.name})", function=func.name)
		report = LoopInvariantReport(function=func.name)
		dom = DominatorAnalysis().compute(func)
		forest = LoopAnalysis().compute(func, dom)
		report.loops = len(forest.loops)
		done: Set[str] = set()

		while True:
			pending = [l for l in forest.innermost_first() if l.header not in done]
			if not pending:
				break
			loop = pending[0]
			done.add(loop.header)

			hoist = self._find_invariants(func, loop, dom)
			if not hoist:
				continue
			preheader, created = insert_preheader(func, loop.header, loop.blocks)
			if created:
				report.preheaders_created.append(preheader)
			target = func.block(preheader)
			for block_name, instr in hoist:
				func.block(block_name).instructions.remove(instr)
				target.instructions.append(instr)
				report.hoisted.append(HoistedInstr(
					dest=str(instr_dest(instr)),
					source_block=block_name,
					preheader=preheader,
					text=format_instr(instr),
				))
				LOG.debug("%s: hoisted '%s' from %s to %s", func.name, format_instr(instr), block_name, preheader)
			if created:
				dom = DominatorAnalysis().compute(func)
				forest = LoopAnalysis().compute(func, dom)
		return report

	def _find_invariants(self, func: Function, loop: NaturalLoop, dom: DominatorInfo) -> List[tuple]:
		order = [b for b in dom.rpo if b in loop.blocks]
		defined_inside: Set[Var] = set()
		writes_memory = False
		for name in order:
			for instr in func.block(name).instructions:
				dest = instr_dest(instr)
				if dest is not None:
					defined_inside.add(dest)
				if isinstance(instr, (Store, Call)):
					writes_memory = True

		invariant: Set[Var] = set()
		found: List[tuple] = []
		chosen: Set[int] = set()

		def operand_ok(op) -> bool:
			if isinstance(op, (Const, Undef)):
				return True
			return op not in defined_inside or op in invariant

		changed = True
		while changed:
			changed = False
			for name in order:
				for instr in func.block(name).body():
					if id(instr) in chosen or not _is_hoistable(instr, writes_memory):
						continue
					if all(operand_ok(u) for u in instr_uses(instr)):
						chosen.add(id(instr))
						invariant.add(instr_dest(instr))
						found.append((name, instr))
						changed = True
		return found


def hoist_loop_invariants(func: Function) -> LoopInvariantReport:
	return LoopInvariantCodeMotion().run(func)


__all__ = ["HoistedInstr", "LoopInvariantReport", "LoopInvariantCodeMotion", "hoist_loop_invariants"]
