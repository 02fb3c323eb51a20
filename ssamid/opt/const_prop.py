# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Sparse conditional constant propagation over SSA.

Analysis: every SSA value starts at Top; parameters and results of loads,
calls and reads are Bottom, and so is the undefined sentinel. Two worklists
drive the fixpoint: CFG edges that became executable, and SSA uses whose
operand changed. A phi meets only the operands arriving along executable
edges. Other instructions fold when all operands are constant. Division by
zero and unknown opcodes yield Bottom instead of failing. Every update is
met with the previous value, so values only move down the lattice.

Rewrite:
  - branches on a constant condition become jumps; the dead edge and its
    phi operands go away
  - blocks never marked executable are deleted
  - uses of constant values become literals
  - pure definitions of constant values (and constant phis) are deleted
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, List, Optional, Set, Tuple

from ..errors import InvariantViolation, UnsupportedOpcodeError
from ..ir import (
	BinaryOp,
	Branch,
	Call,
	Const,
	Copy,
	Function,
	Jump,
	Load,
	Node,
	Operand,
	Phi,
	Read,
	UnaryOp,
	Var,
	instr_dest,
	instr_uses,
	rewrite_uses,
)
from ..semantics import eval_binary, eval_unary

LOG = logging.getLogger(__name__)


class Level(Enum):
	TOP = "top"
	CONST = "const"
	BOTTOM = "bottom"


@dataclass(frozen=True)
class LatticeValue:
	level: Level
	value: Optional[int] = None

	@staticmethod
	def const(value: int) -> "LatticeValue":
		return LatticeValue(Level.CONST, value)

	@property
	def is_top(self) -> bool:
		return self.level is Level.TOP

	@property
	def is_const(self) -> bool:
		return self.level is Level.CONST

	@property
	def is_bottom(self) -> bool:
		return self.level is Level.BOTTOM

	def meet(self, other: "LatticeValue") -> "LatticeValue":
		if self.is_top:
			return other
		if other.is_top:
			return self
		if self.is_bottom or other.is_bottom:
			return BOTTOM
		return self if self.value == other.value else BOTTOM

	def __str__(self) -> str:
		if self.is_const:
			return str(self.value)
		return self.level.value


TOP = LatticeValue(Level.TOP)
BOTTOM = LatticeValue(Level.BOTTOM)


@dataclass
class ConstPropReport:
	function: str
	constants: int = 0
	uses_rewritten: int = 0
	instructions_removed: int = 0
	branches_folded: int = 0
	blocks_removed: List[str] = field(default_factory=list)

	@property
	def changed(self) -> bool:
		return bool(self.uses_rewritten or self.instructions_removed or self.branches_folded or self.blocks_removed)

	def format(self) -> str:
		lines = [
			f"const-prop {self.function}: {self.constants} constant values, "
			f"{self.uses_rewritten} uses rewritten, {self.instructions_removed} instructions removed, "
			f"{self.branches_folded} branches folded",
		]
		if self.blocks_removed:
			lines.append(f"  removed blocks: {', '.join(self.blocks_removed)}")
		return "\n".join(lines)


@dataclass
class ConstPropResult:
	lattice: Dict[Var, LatticeValue]
	executable_blocks: Set[str]
	executable_edges: Set[Tuple[str, str]]
	report: ConstPropReport

	def value_of(self, var: Var) -> LatticeValue:
		return self.lattice.get(var, BOTTOM)


class ConstantPropagation:
	def run(self, func: Function) -> ConstPropResult:
		if not func.ssa:
			raise InvariantViolation(f"constant propagation needs SSA form ({func.name})", function=func.name)
		values, blocks, edges = self.analyze(func)
		report = self._rewrite(func, values, blocks)
		return ConstPropResult(lattice=values, executable_blocks=blocks, executable_edges=edges, report=report)

	def analyze(self, func: Function) -> Tuple[Dict[Var, LatticeValue], Set[str], Set[Tuple[str, str]]]:
		values: Dict[Var, LatticeValue] = {}
		uses: Dict[Var, List[Tuple[Node, str]]] = {}
		for block in func.blocks.values():
			for node in block.nodes():
				dest = instr_dest(node)
				if dest is not None:
					values[dest] = TOP
				for u in instr_uses(node):
					if isinstance(u, Var):
						uses.setdefault(u, []).append((node, block.name))
		for p in func.params:
			values[Var(p, 0)] = BOTTOM

		exec_blocks: Set[str] = set()
		exec_edges: Set[Tuple[str, str]] = set()
		cfg_work: Deque[Tuple[Optional[str], str]] = deque([(None, func.entry)])
		ssa_work: Deque[Tuple[Node, str]] = deque()

		def operand_value(op: Operand) -> LatticeValue:
			if isinstance(op, Const):
				return LatticeValue.const(op.value)
			if isinstance(op, Var):
				return values.get(op, BOTTOM)
			return BOTTOM

		def update(var: Var, new: LatticeValue) -> None:
			old = values.get(var, TOP)
			merged = old.meet(new)
			if merged != old:
				values[var] = merged
				for item in uses.get(var, ()):
					ssa_work.append(item)

		def visit_phi(phi: Phi, block: str) -> None:
			acc = TOP
			for arg in phi.incoming:
				if (arg.block, block) in exec_edges:
					acc = acc.meet(operand_value(arg.value))
			update(phi.dest, acc)

		def visit(node: Node, block: str) -> None:
			if isinstance(node, Phi):
				visit_phi(node, block)
			elif isinstance(node, (BinaryOp, UnaryOp)):
				update(node.dest, self._evaluate(node, operand_value))
			elif isinstance(node, Copy):
				update(node.dest, operand_value(node.src))
			elif isinstance(node, (Load, Read)):
				update(node.dest, BOTTOM)
			elif isinstance(node, Call):
				if node.dest is not None:
					update(node.dest, BOTTOM)
			elif isinstance(node, Jump):
				cfg_work.append((block, node.target))
			elif isinstance(node, Branch):
				cond = operand_value(node.cond)
				if cond.is_const:
					cfg_work.append((block, node.then_target if cond.value != 0 else node.else_target))
				elif cond.is_bottom:
					cfg_work.append((block, node.then_target))
					cfg_work.append((block, node.else_target))

		while cfg_work or ssa_work:
			while cfg_work:
				src, dst = cfg_work.popleft()
				if src is not None:
					if (src, dst) in exec_edges:
						continue
					exec_edges.add((src, dst))
				target = func.block(dst)
				if dst in exec_blocks:
					for phi in target.phis():
						visit_phi(phi, dst)
					continue
				exec_blocks.add(dst)
				for node in target.nodes():
					visit(node, dst)
			while ssa_work:
				node, block = ssa_work.popleft()
				if block in exec_blocks:
					visit(node, block)
		return values, exec_blocks, exec_edges

	def _evaluate(self, node: Node, operand_value) -> LatticeValue:
		if isinstance(node, BinaryOp):
			ins = [operand_value(node.left), operand_value(node.right)]
		else:
			ins = [operand_value(node.operand)]
		if any(v.is_bottom for v in ins):
			return BOTTOM
		if any(v.is_top for v in ins):
			return TOP
		try:
			if isinstance(node, BinaryOp):
				return LatticeValue.const(eval_binary(node.op, ins[0].value, ins[1].value))
			return LatticeValue.const(eval_unary(node.op, ins[0].value))
		except ZeroDivisionError:
			LOG.debug("%s by zero left unfolded", node.op)
			return BOTTOM
		except UnsupportedOpcodeError as exc:
			LOG.debug("%s; treated as overdefined", exc)
			return BOTTOM

	def _rewrite(self, func: Function, values: Dict[Var, LatticeValue], exec_blocks: Set[str]) -> ConstPropReport:
		report = ConstPropReport(function=func.name)
		report.constants = sum(1 for v in values.values() if v.is_const)

		def cond_value(op: Operand) -> LatticeValue:
			if isinstance(op, Const):
				return LatticeValue.const(op.value)
			if isinstance(op, Var):
				return values.get(op, BOTTOM)
			return BOTTOM

		for name in list(func.blocks):
			if name not in exec_blocks:
				continue
			term = func.blocks[name].terminator
			if isinstance(term, Branch):
				cond = cond_value(term.cond)
				if cond.is_const:
					kept = func.fold_branch(name, cond.value != 0)
					report.branches_folded += 1
					LOG.debug("%s: folded branch in %s to %s", func.name, name, kept)

		for name in [n for n in func.blocks if n not in exec_blocks]:
			func.delete_block(name)
			report.blocks_removed.append(name)

		def substitute(op: Operand) -> Operand:
			if isinstance(op, Var):
				v = values.get(op)
				if v is not None and v.is_const:
					report.uses_rewritten += 1
					return Const(v.value)
			return op

		for block in func.blocks.values():
			kept = []
			for instr in block.instructions:
				dest = instr_dest(instr)
				if (
					isinstance(instr, (Phi, BinaryOp, UnaryOp, Copy))
					and dest is not None
					and values.get(dest, BOTTOM).is_const
				):
					report.instructions_removed += 1
					continue
				rewrite_uses(instr, substitute)
				kept.append(instr)
			block.instructions = kept
			if block.terminator is not None:
				rewrite_uses(block.terminator, substitute)

		LOG.debug(
			"%s: %d constants, %d uses rewritten, %d removed",
			func.name, report.constants, report.uses_rewritten, report.instructions_removed,
		)
		return report


def propagate_constants(func: Function) -> ConstPropResult:
	return ConstantPropagation().run(func)


__all__ = [
	"Level",
	"LatticeValue",
	"TOP",
	"BOTTOM",
	"ConstPropReport",
	"ConstPropResult",
	"ConstantPropagation",
	"propagate_constants",
]
