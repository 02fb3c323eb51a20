# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Three-address IR shared by every pass.

A `Function` owns its `BasicBlock`s; each block holds a list of instructions
(phis first) and one terminator. Predecessor lists are explicit and ordered,
and every phi keeps one incoming entry per predecessor in that same order.
The edge-mutation helpers on `Function` update terminators, predecessor lists
and phi operands together so the three never disagree.

Operands are immutable values:
  - `Const(value)`       integer literal
  - `Var(name, version)` variable; `version` is None before SSA construction
  - `UNDEF`              the undefined sentinel bound to uses with no reaching def
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Union

from .errors import InvariantViolation, StructuralError


# Operands

@dataclass(frozen=True)
class Const:
	value: int

	def __str__(self) -> str:
		return str(self.value)


@dataclass(frozen=True)
class Var:
	name: str
	version: Optional[int] = None

	def __str__(self) -> str:
		if self.version is None:
			return self.name
		return f"{self.name}${self.version}"

	def unversioned(self) -> "Var":
		return Var(self.name)


@dataclass(frozen=True)
class Undef:
	"""Value of a variable read before any definition reaches it."""

	def __str__(self) -> str:
		return "undef"


UNDEF = Undef()

Operand = Union[Const, Var, Undef]


# Node base classes

class Node:
	"""Base class for instructions and terminators."""
	pass


class Instr(Node):
	"""Base class for non-terminator instructions."""
	pass


class Terminator(Node):
	"""Base class for block terminators."""
	pass


# Instructions

@dataclass(eq=False)
class BinaryOp(Instr):
	"""dest = op left, right"""
	dest: Var
	op: str
	left: Operand
	right: Operand


@dataclass(eq=False)
class UnaryOp(Instr):
	"""dest = op operand"""
	dest: Var
	op: str
	operand: Operand


@dataclass(eq=False)
class Copy(Instr):
	"""dest = src"""
	dest: Var
	src: Operand


@dataclass(eq=False)
class Load(Instr):
	"""dest = memory[address]"""
	dest: Var
	address: Operand


@dataclass(eq=False)
class Store(Instr):
	"""memory[address] = value"""
	address: Operand
	value: Operand


@dataclass(eq=False)
class Call(Instr):
	"""dest = callee(args...); dest may be None for a call used as a statement."""
	dest: Optional[Var]
	callee: str
	args: List[Operand] = field(default_factory=list)


@dataclass(eq=False)
class Read(Instr):
	"""dest = next input value"""
	dest: Var


@dataclass(eq=False)
class Write(Instr):
	"""append value to the output"""
	value: Operand


@dataclass(eq=False)
class PhiArg:
	block: str
	value: Operand


@dataclass(eq=False)
class Phi(Instr):
	"""
	dest = phi [pred0: v0, pred1: v1, ...]

	`incoming` is ordered exactly like the owning block's `preds`.
	"""
	dest: Var
	incoming: List[PhiArg] = field(default_factory=list)

	def value_from(self, block: str) -> Operand:
		for arg in self.incoming:
			if arg.block == block:
				return arg.value
		raise InvariantViolation(f"phi for {self.dest} has no operand for predecessor {block}")

	def set_value(self, block: str, value: Operand) -> None:
		for arg in self.incoming:
			if arg.block == block:
				arg.value = value
				return
		raise InvariantViolation(f"phi for {self.dest} has no operand for predecessor {block}")

	def remove_incoming(self, block: str) -> None:
		self.incoming = [arg for arg in self.incoming if arg.block != block]

	def rename_incoming(self, old: str, new: str) -> None:
		for arg in self.incoming:
			if arg.block == old:
				arg.block = new


# Terminators

@dataclass(eq=False)
class Jump(Terminator):
	target: str


@dataclass(eq=False)
class Branch(Terminator):
	"""Non-zero `cond` transfers to `then_target`, zero to `else_target`."""
	cond: Operand
	then_target: str
	else_target: str


@dataclass(eq=False)
class Return(Terminator):
	value: Optional[Operand] = None


# Operand helpers

def instr_dest(node: Node) -> Optional[Var]:
	"""Variable defined by `node`, or None."""
	if isinstance(node, (BinaryOp, UnaryOp, Copy, Load, Read, Phi)):
		return node.dest
	if isinstance(node, Call):
		return node.dest
	return None


def instr_uses(node: Node) -> List[Operand]:
	"""All operands read by `node`, phi incoming values included."""
	if isinstance(node, BinaryOp):
		return [node.left, node.right]
	if isinstance(node, UnaryOp):
		return [node.operand]
	if isinstance(node, Copy):
		return [node.src]
	if isinstance(node, Load):
		return [node.address]
	if isinstance(node, Store):
		return [node.address, node.value]
	if isinstance(node, Call):
		return list(node.args)
	if isinstance(node, Write):
		return [node.value]
	if isinstance(node, Phi):
		return [arg.value for arg in node.incoming]
	if isinstance(node, Branch):
		return [node.cond]
	if isinstance(node, Return):
		return [node.value] if node.value is not None else []
	return []


def rewrite_uses(node: Node, fn: Callable[[Operand], Operand]) -> None:
	"""Replace every operand `u` read by `node` with `fn(u)`, in place."""
	if isinstance(node, BinaryOp):
		node.left = fn(node.left)
		node.right = fn(node.right)
	elif isinstance(node, UnaryOp):
		node.operand = fn(node.operand)
	elif isinstance(node, Copy):
		node.src = fn(node.src)
	elif isinstance(node, Load):
		node.address = fn(node.address)
	elif isinstance(node, Store):
		node.address = fn(node.address)
		node.value = fn(node.value)
	elif isinstance(node, Call):
		node.args = [fn(a) for a in node.args]
	elif isinstance(node, Write):
		node.value = fn(node.value)
	elif isinstance(node, Phi):
		for arg in node.incoming:
			arg.value = fn(arg.value)
	elif isinstance(node, Branch):
		node.cond = fn(node.cond)
	elif isinstance(node, Return):
		if node.value is not None:
			node.value = fn(node.value)


def set_dest(node: Instr, dest: Var) -> None:
	if instr_dest(node) is None:
		raise InvariantViolation(f"{type(node).__name__} defines no value")
	node.dest = dest  # type: ignore[attr-defined]


def has_side_effects(node: Node) -> bool:
	"""True for instructions observable beyond their own definition."""
	return isinstance(node, (Store, Call, Read, Write, Terminator))


def terminator_targets(term: Optional[Terminator]) -> List[str]:
	"""Distinct successor labels of a terminator, in order."""
	if isinstance(term, Jump):
		return [term.target]
	if isinstance(term, Branch):
		if term.then_target == term.else_target:
			return [term.then_target]
		return [term.then_target, term.else_target]
	return []


def retarget(term: Terminator, old: str, new: str) -> None:
	"""Redirect every edge of `term` that points at `old` to `new`."""
	if isinstance(term, Jump):
		if term.target == old:
			term.target = new
	elif isinstance(term, Branch):
		if term.then_target == old:
			term.then_target = new
		if term.else_target == old:
			term.else_target = new


# Containers

@dataclass(eq=False)
class BasicBlock:
	name: str
	instructions: List[Instr] = field(default_factory=list)
	terminator: Optional[Terminator] = None
	preds: List[str] = field(default_factory=list)

	def phis(self) -> List[Phi]:
		out: List[Phi] = []
		for instr in self.instructions:
			if not isinstance(instr, Phi):
				break
			out.append(instr)
		return out

	def body(self) -> List[Instr]:
		"""Non-phi instructions, in order."""
		return [i for i in self.instructions if not isinstance(i, Phi)]

	def successors(self) -> List[str]:
		return terminator_targets(self.terminator)

	def nodes(self) -> Iterator[Node]:
		"""Instructions followed by the terminator."""
		yield from self.instructions
		if self.terminator is not None:
			yield self.terminator


@dataclass(eq=False)
class Function:
	name: str
	params: List[str]
	blocks: Dict[str, BasicBlock] = field(default_factory=dict)
	entry: str = "entry"
	ssa: bool = False
	# Highest version handed out per variable base name.
	versions: Dict[str, int] = field(default_factory=dict)

	def block(self, name: str) -> BasicBlock:
		try:
			return self.blocks[name]
		except KeyError:
			raise StructuralError(f"function {self.name}: unknown block '{name}'", function=self.name, block=name) from None

	def fresh_var(self, base: str) -> Var:
		n = self.versions.get(base, 0) + 1
		self.versions[base] = n
		return Var(base, n)

	def fresh_label(self, base: str) -> str:
		if base not in self.blocks:
			return base
		n = 1
		while f"{base}.{n}" in self.blocks:
			n += 1
		return f"{base}.{n}"

	def insert_block(self, block: BasicBlock, before: Optional[str] = None) -> None:
		"""Add `block`, placed just before `before` in layout order when given."""
		if block.name in self.blocks:
			raise InvariantViolation(f"function {self.name}: block '{block.name}' already exists", function=self.name)
		if before is None or before not in self.blocks:
			self.blocks[block.name] = block
			return
		reordered: Dict[str, BasicBlock] = {}
		for name, existing in self.blocks.items():
			if name == before:
				reordered[block.name] = block
			reordered[name] = existing
		self.blocks = reordered

	def link(self) -> None:
		"""Rebuild predecessor lists from terminators, in layout order."""
		for block in self.blocks.values():
			block.preds = []
		for block in self.blocks.values():
			for succ in block.successors():
				self.block(succ).preds.append(block.name)

	def remove_edge(self, src: str, dst: str) -> None:
		"""Drop `src` from `dst`'s predecessors and phis; the terminator is the caller's job."""
		target = self.block(dst)
		target.preds = [p for p in target.preds if p != src]
		for phi in target.phis():
			phi.remove_incoming(src)

	def split_edge(self, src: str, dst: str, name: Optional[str] = None) -> BasicBlock:
		"""Insert an empty block on the edge src -> dst and return it."""
		source = self.block(src)
		target = self.block(dst)
		if dst not in source.successors():
			raise InvariantViolation(f"function {self.name}: no edge {src} -> {dst}", function=self.name, block=src)
		label = self.fresh_label(name or f"{src}.{dst}")
		mid = BasicBlock(name=label, instructions=[], terminator=Jump(dst), preds=[src])
		retarget(source.terminator, dst, label)
		target.preds = [label if p == src else p for p in target.preds]
		for phi in target.phis():
			phi.rename_incoming(src, label)
		self.insert_block(mid, before=dst)
		return mid

	def fold_branch(self, name: str, taken: bool) -> str:
		"""Replace a conditional branch with a jump to one arm; returns the kept target."""
		block = self.block(name)
		term = block.terminator
		if not isinstance(term, Branch):
			raise InvariantViolation(f"function {self.name}: block '{name}' does not end in a branch", function=self.name, block=name)
		keep = term.then_target if taken else term.else_target
		drop = term.else_target if taken else term.then_target
		block.terminator = Jump(keep)
		if drop != keep:
			self.remove_edge(name, drop)
		return keep

	def delete_block(self, name: str) -> None:
		block = self.block(name)
		for succ in block.successors():
			if succ in self.blocks and succ != name:
				self.remove_edge(name, succ)
		del self.blocks[name]

	def all_nodes(self) -> Iterator[tuple]:
		"""Yield (block, node) for every instruction and terminator."""
		for block in self.blocks.values():
			for node in block.nodes():
				yield block, node


@dataclass
class Program:
	functions: Dict[str, Function] = field(default_factory=dict)

	def function(self, name: str) -> Function:
		try:
			return self.functions[name]
		except KeyError:
			raise StructuralError(f"unknown function '{name}'") from None


__all__ = [
	"Const",
	"Var",
	"Undef",
	"UNDEF",
	"Operand",
	"Node",
	"Instr",
	"Terminator",
	"BinaryOp",
	"UnaryOp",
	"Copy",
	"Load",
	"Store",
	"Call",
	"Read",
	"Write",
	"PhiArg",
	"Phi",
	"Jump",
	"Branch",
	"Return",
	"instr_dest",
	"instr_uses",
	"rewrite_uses",
	"set_dest",
	"has_side_effects",
	"terminator_targets",
	"retarget",
	"BasicBlock",
	"Function",
	"Program",
]
