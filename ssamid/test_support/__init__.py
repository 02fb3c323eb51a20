# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Shared helpers for tests.

- `cfg_from_edges` builds a function with an arbitrary graph shape (at most
  two successors per block) for the analysis tests.
- `brute_force_dominators` is the reference for dominator checks: a dominates
  b iff b is unreachable from entry once a is removed.
- `RandomProgramGenerator` emits structured, always-terminating IR text for
  semantic cross-checks against the interpreter.
"""

from __future__ import annotations

import copy
import random
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ssamid.ir import BasicBlock, Branch, Function, Jump, Program, Return, Var
from ssamid.text import parse_function, parse_program


def cfg_from_edges(edges: Iterable[Tuple[str, str]], entry: str = "entry", blocks: Iterable[str] = ()) -> Function:
	succs: Dict[str, List[str]] = {entry: []}
	for b in blocks:
		succs.setdefault(b, [])
	for src, dst in edges:
		succs.setdefault(src, []).append(dst)
		succs.setdefault(dst, [])
	func = Function(name="f", params=[], entry=entry)
	for name, out in succs.items():
		if len(out) == 0:
			term = Return(None)
		elif len(out) == 1:
			term = Jump(out[0])
		elif len(out) == 2:
			term = Branch(Var("c"), out[0], out[1])
		else:
			raise ValueError(f"block {name} has more than two successors")
		func.blocks[name] = BasicBlock(name=name, instructions=[], terminator=term)
	func.link()
	return func


def _reach(func: Function, removed: Optional[str]) -> Set[str]:
	if func.entry == removed:
		return set()
	seen = {func.entry}
	work = [func.entry]
	while work:
		b = work.pop()
		for s in func.blocks[b].successors():
			if s != removed and s not in seen:
				seen.add(s)
				work.append(s)
	return seen


def brute_force_dominators(func: Function) -> Dict[str, Set[str]]:
	"""doms[b] for every reachable b, computed by deleting each block in turn."""
	live = _reach(func, None)
	doms: Dict[str, Set[str]] = {b: {b} for b in live}
	for a in live:
		without = _reach(func, a)
		for b in live:
			if b != a and b not in without:
				doms[b].add(a)
	return doms


def clone_program(program: Program) -> Program:
	return copy.deepcopy(program)


def parse_fn(text: str) -> Function:
	return parse_function(text)


class RandomProgramGenerator:
	"""
	Generates a `main` function over a few variables with nested ifs and
	counted loops. Loop counters are never assigned in loop bodies, and
	division only uses non-zero literal divisors, so every program terminates
	without faults.
	"""

	VARS = ("a", "b", "c", "d")
	OPS = ("add", "sub", "mul", "lt", "le", "eq", "ne", "gt", "ge")

	def __init__(self, seed: int, max_depth: int = 2, max_stmts: int = 5) -> None:
		self.rng = random.Random(seed)
		self.max_depth = max_depth
		self.max_stmts = max_stmts
		self.labels = 0
		self.counters = 0

	def _label(self, kind: str) -> str:
		self.labels += 1
		return f"{kind}{self.labels}"

	def _operand(self) -> str:
		if self.rng.random() < 0.3:
			return str(self.rng.randint(-4, 9))
		return self.rng.choice(self.VARS)

	def _simple(self) -> List[str]:
		r = self.rng.random()
		dest = self.rng.choice(self.VARS)
		if r < 0.45:
			return [f"{dest} = {self.rng.choice(self.OPS)} {self._operand()}, {self._operand()}"]
		if r < 0.55:
			return [f"{dest} = {self.rng.choice(('div', 'mod'))} {self._operand()}, {self.rng.choice((1, 2, 3, -3, 7))}"]
		if r < 0.62:
			return [f"{dest} = {self.rng.choice(('neg', 'not'))} {self._operand()}"]
		if r < 0.72:
			return [f"{dest} = {self._operand()}"]
		if r < 0.8:
			return [f"write {self._operand()}"]
		if r < 0.86:
			return [f"store {self.rng.randint(0, 3)}, {self._operand()}"]
		if r < 0.92:
			return [f"{dest} = load {self.rng.randint(0, 3)}"]
		return [f"{dest} = read"]

	def _stmts(self, depth: int) -> List[str]:
		out: List[str] = []
		for _ in range(self.rng.randint(1, self.max_stmts)):
			r = self.rng.random()
			if depth < self.max_depth and r < 0.2:
				out.extend(self._if(depth + 1))
			elif depth < self.max_depth and r < 0.4:
				out.extend(self._loop(depth + 1))
			else:
				out.extend(self._simple())
		return out

	def _if(self, depth: int) -> List[str]:
		then_l, else_l, end_l = self._label("then"), self._label("else"), self._label("join")
		lines = [f"branch {self.rng.choice(self.VARS)}, {then_l}, {else_l}", f"{then_l}:"]
		lines += self._stmts(depth)
		lines += [f"jump {end_l}", f"{else_l}:"]
		if self.rng.random() < 0.7:
			lines += self._stmts(depth)
		lines += [f"jump {end_l}", f"{end_l}:"]
		return lines

	def _loop(self, depth: int) -> List[str]:
		self.counters += 1
		i = f"i{self.counters}"
		head, body, done = self._label("head"), self._label("body"), self._label("done")
		bound = self.rng.randint(0, 4)
		lines = [f"{i} = 0", f"jump {head}", f"{head}:", f"t{self.counters} = lt {i}, {bound}", f"branch t{self.counters}, {body}, {done}", f"{body}:"]
		lines += self._stmts(depth)
		lines += [f"{i} = add {i}, 1", f"jump {head}", f"{done}:"]
		return lines

	def generate(self) -> str:
		lines = ["function main() {"]
		body = self._stmts(0)
		for v in self.VARS:
			body.append(f"write {v}")
		for line in body:
			lines.append(line if line.endswith(":") else f"\t{line}")
		lines.append("\treturn a")
		lines.append("}")
		return "\n".join(lines) + "\n"


def random_program(seed: int, **kwargs) -> Program:
	return parse_program(RandomProgramGenerator(seed, **kwargs).generate())


__all__ = [
	"cfg_from_edges",
	"brute_force_dominators",
	"clone_program",
	"parse_fn",
	"RandomProgramGenerator",
	"random_program",
]
