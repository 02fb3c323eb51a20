# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Reference interpreter for the IR, in or out of SSA form.

Variables and memory cells read as 0 until written; `read` takes the next
input value (0 once inputs run out) and `write` appends to the output.
Phis of a block are evaluated together on entry, using the edge control
arrived on. Memory is one flat integer-addressed store shared by all calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .errors import InterpError, UnsupportedOpcodeError
from .ir import (
	BinaryOp,
	Branch,
	Call,
	Const,
	Copy,
	Function,
	Jump,
	Load,
	Operand,
	Phi,
	Program,
	Read,
	Return,
	Store,
	UnaryOp,
	Var,
	Write,
)
from .semantics import eval_binary, eval_unary, wrap


@dataclass
class ExecResult:
	output: List[int] = field(default_factory=list)
	value: Optional[int] = None
	memory: Dict[int, int] = field(default_factory=dict)
	steps: int = 0


class Interpreter:
	def __init__(self, program: Program, inputs: Sequence[int] = (), max_steps: int = 1_000_000, max_depth: int = 256) -> None:
		self.program = program
		self.inputs = list(inputs)
		self.max_steps = max_steps
		self.max_depth = max_depth
		self._input_pos = 0
		self.result = ExecResult()

	def run(self, entry: str = "main", args: Sequence[int] = ()) -> ExecResult:
		self.result = ExecResult()
		self._input_pos = 0
		self.result.value = self.call(entry, list(args), 0)
		return self.result

	def call(self, name: str, args: List[int], depth: int) -> Optional[int]:
		if name not in self.program.functions:
			raise InterpError(f"call to unknown function '{name}'")
		if depth > self.max_depth:
			raise InterpError(f"call depth limit {self.max_depth} exceeded in '{name}'")
		func = self.program.functions[name]
		env: Dict[Var, int] = {}
		version = 0 if func.ssa else None
		for i, p in enumerate(func.params):
			env[Var(p, version)] = wrap(args[i]) if i < len(args) else 0
		return self._exec(func, env, depth)

	def _value(self, env: Dict[Var, int], op: Operand) -> int:
		if isinstance(op, Const):
			return op.value
		if isinstance(op, Var):
			return env.get(op, 0)
		return 0

	def _tick(self, func: Function) -> None:
		self.result.steps += 1
		if self.result.steps > self.max_steps:
			raise InterpError(f"step limit {self.max_steps} exceeded in '{func.name}'")

	def _exec(self, func: Function, env: Dict[Var, int], depth: int) -> Optional[int]:
		prev: Optional[str] = None
		current = func.entry
		memory = self.result.memory
		while True:
			block = func.block(current)
			phis = block.phis()
			if phis and prev is not None:
				values = [self._value(env, phi.value_from(prev)) for phi in phis]
				for phi, v in zip(phis, values):
					env[phi.dest] = v
			for instr in block.instructions:
				if isinstance(instr, Phi):
					continue
				self._tick(func)
				if isinstance(instr, BinaryOp):
					left = self._value(env, instr.left)
					right = self._value(env, instr.right)
					try:
						env[instr.dest] = eval_binary(instr.op, left, right)
					except ZeroDivisionError as exc:
						raise InterpError(f"{func.name}/{current}: {exc}") from exc
					except UnsupportedOpcodeError as exc:
						raise InterpError(f"{func.name}/{current}: {exc}") from exc
				elif isinstance(instr, UnaryOp):
					try:
						env[instr.dest] = eval_unary(instr.op, self._value(env, instr.operand))
					except UnsupportedOpcodeError as exc:
						raise InterpError(f"{func.name}/{current}: {exc}") from exc
				elif isinstance(instr, Copy):
					env[instr.dest] = self._value(env, instr.src)
				elif isinstance(instr, Load):
					env[instr.dest] = memory.get(self._value(env, instr.address), 0)
				elif isinstance(instr, Store):
					memory[self._value(env, instr.address)] = self._value(env, instr.value)
				elif isinstance(instr, Call):
					args = [self._value(env, a) for a in instr.args]
					ret = self.call(instr.callee, args, depth + 1)
					if instr.dest is not None:
						env[instr.dest] = ret if ret is not None else 0
				elif isinstance(instr, Read):
					if self._input_pos < len(self.inputs):
						env[instr.dest] = wrap(self.inputs[self._input_pos])
						self._input_pos += 1
					else:
						env[instr.dest] = 0
				elif isinstance(instr, Write):
					self.result.output.append(self._value(env, instr.value))
			term = block.terminator
			self._tick(func)
			if isinstance(term, Jump):
				prev, current = current, term.target
			elif isinstance(term, Branch):
				taken = self._value(env, term.cond) != 0
				prev, current = current, term.then_target if taken else term.else_target
			elif isinstance(term, Return):
				return self._value(env, term.value) if term.value is not None else None
			else:
				raise InterpError(f"{func.name}/{current}: block has no terminator")


def run_program(program: Program, inputs: Sequence[int] = (), entry: str = "main", args: Sequence[int] = (), max_steps: int = 1_000_000) -> ExecResult:
	return Interpreter(program, inputs=inputs, max_steps=max_steps).run(entry=entry, args=args)


__all__ = ["ExecResult", "Interpreter", "run_program"]
