# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Consistency checks run between passes.

`verify_cfg` enforces the structural contract every pass relies on:
  - the entry block exists and every block has a terminator
  - terminators only target known blocks
  - predecessor lists mirror terminator edges
  - phis lead their block and list exactly the predecessors, in order

`SSAVerifier` additionally enforces, for functions in SSA form:
  - one definition per SSA value (parameters are version 0)
  - no unversioned names
  - def-before-use within a block and dominance across blocks
  - each phi operand is available at the end of its predecessor

Malformed graphs raise `StructuralError`; broken bookkeeping raises
`InvariantViolation`.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, Optional, Set, Tuple

from .analysis.dom import DominatorAnalysis, DominatorInfo
from .errors import InvariantViolation, StructuralError
from .ir import Function, Phi, Program, Var, instr_dest, instr_uses


def verify_cfg(func: Function) -> None:
	if func.entry not in func.blocks:
		raise StructuralError(f"function {func.name}: entry block '{func.entry}' does not exist", function=func.name)
	expected: Dict[str, Counter] = {name: Counter() for name in func.blocks}
	for name, block in func.blocks.items():
		if block.name != name:
			raise InvariantViolation(f"function {func.name}: block registered as '{name}' is named '{block.name}'", function=func.name, block=name)
		if block.terminator is None:
			raise StructuralError(f"function {func.name}: block '{name}' has no terminator", function=func.name, block=name)
		for succ in block.successors():
			if succ not in func.blocks:
				raise StructuralError(f"function {func.name}: block '{name}' targets unknown block '{succ}'", function=func.name, block=name)
			expected[succ][name] += 1
	for name, block in func.blocks.items():
		if Counter(block.preds) != expected[name]:
			raise InvariantViolation(
				f"function {func.name}: predecessors of '{name}' are {block.preds}, edges say {sorted(expected[name])}",
				function=func.name,
				block=name,
			)
		seen_body = False
		for instr in block.instructions:
			if isinstance(instr, Phi):
				if seen_body:
					raise InvariantViolation(f"function {func.name}: phi for {instr.dest} follows a non-phi in '{name}'", function=func.name, block=name)
				incoming = [arg.block for arg in instr.incoming]
				if incoming != block.preds:
					raise InvariantViolation(
						f"function {func.name}: phi for {instr.dest} in '{name}' has operands for {incoming}, predecessors are {block.preds}",
						function=func.name,
						block=name,
					)
			else:
				seen_body = True


class SSAVerifier:
	def __init__(self, func: Function, dom: Optional[DominatorInfo] = None) -> None:
		self.func = func
		self.dom = dom
		# SSA value -> (block, index); parameters sit at index -1 of the entry.
		self.defs: Dict[Var, Tuple[str, int]] = {}

	def verify(self) -> None:
		func = self.func
		if not func.ssa:
			raise InvariantViolation(f"function {func.name} is not in SSA form", function=func.name)
		verify_cfg(func)
		if self.dom is None:
			self.dom = DominatorAnalysis().compute(func)
		self._collect_defs()
		for name in self.dom.rpo:
			self._check_block(name)

	def _fail(self, msg: str, block: Optional[str] = None) -> None:
		raise InvariantViolation(f"function {self.func.name}: {msg}", function=self.func.name, block=block)

	def _define(self, var: Var, block: str, index: int) -> None:
		if var.version is None:
			self._fail(f"definition of unversioned name '{var.name}'", block)
		if var in self.defs:
			prev = self.defs[var][0]
			self._fail(f"SSA value {var} defined twice (in {prev} and {block})", block)
		self.defs[var] = (block, index)

	def _collect_defs(self) -> None:
		for p in self.func.params:
			self._define(Var(p, 0), self.func.entry, -1)
		for name in self.dom.rpo:
			for i, instr in enumerate(self.func.blocks[name].instructions):
				dest = instr_dest(instr)
				if dest is not None:
					self._define(dest, name, i)

	def _check_use(self, op, block: str, index: int) -> None:
		if not isinstance(op, Var):
			return
		if op.version is None:
			self._fail(f"use of unversioned name '{op.name}' in '{block}'", block)
		where = self.defs.get(op)
		if where is None:
			self._fail(f"use of undefined SSA value {op} in '{block}'", block)
		def_block, def_index = where
		if def_block == block:
			if def_index >= index:
				self._fail(f"use of {op} before its definition in '{block}'", block)
		elif not self.dom.dominates(def_block, block):
			self._fail(f"use of {op} in '{block}' is not dominated by its definition in '{def_block}'", block)

	def _check_block(self, name: str) -> None:
		block = self.func.blocks[name]
		live_preds: Set[str] = {p for p in block.preds if self.dom.is_reachable(p)}
		for i, instr in enumerate(block.instructions):
			if isinstance(instr, Phi):
				for arg in instr.incoming:
					if arg.block in live_preds:
						# Available at the end of the predecessor.
						self._check_use(arg.value, arg.block, len(self.func.blocks[arg.block].instructions) + 1)
				continue
			for u in instr_uses(instr):
				self._check_use(u, name, i)
		if block.terminator is not None:
			for u in instr_uses(block.terminator):
				self._check_use(u, name, len(block.instructions))


def verify_function(func: Function) -> None:
	if func.ssa:
		SSAVerifier(func).verify()
	else:
		verify_cfg(func)


def verify_program(program: Program) -> None:
	for func in program.functions.values():
		verify_function(func)


__all__ = ["verify_cfg", "SSAVerifier", "verify_function", "verify_program"]
