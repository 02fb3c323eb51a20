# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Parser for the textual three-address IR.

The lark grammar yields a concrete tree which is walked by hand into `ir`
objects. Block structure is implicit in the text:
  - statements before the first label open the entry block
  - a block that reaches the next label without a terminator falls through
  - the last block without a terminator returns
  - statements following a terminator without a label open a new (unreachable)
    block
Functions that mention versioned names (`x$2`) or phis are read in SSA form;
their phi operands are reordered to follow the predecessor list.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from ..errors import ParseError
from ..ir import (
	UNDEF,
	BasicBlock,
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
	PhiArg,
	Program,
	Read,
	Return,
	Store,
	Terminator,
	UnaryOp,
	Var,
	Write,
	instr_dest,
	instr_uses,
)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")

_PARSER: Optional[Lark] = None


def _get_parser() -> Lark:
	global _PARSER
	if _PARSER is None:
		_PARSER = Lark(
			_GRAMMAR_PATH.read_text(),
			parser="lalr",
			lexer="basic",
			start="start",
			propagate_positions=True,
			maybe_placeholders=False,
		)
	return _PARSER


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)


def _pos(node: Tree | Token) -> Tuple[Optional[int], Optional[int]]:
	if isinstance(node, Token):
		return node.line, node.column
	meta = node.meta
	if getattr(meta, "empty", True):
		return None, None
	return meta.line, meta.column


def _error(msg: str, node: Tree | Token) -> ParseError:
	line, column = _pos(node)
	return ParseError(msg, line=line, column=column)


def parse_program(source: str) -> Program:
	"""Parse IR text into a `Program`; raises `ParseError` on malformed input."""
	try:
		tree = _get_parser().parse(source)
	except UnexpectedInput as exc:
		raise _translate(exc) from exc
	program = Program()
	for child in tree.children:
		if isinstance(child, Tree) and _name(child) == "function":
			func = _FunctionBuilder(child).build()
			if func.name in program.functions:
				raise _error(f"duplicate function '{func.name}'", child)
			program.functions[func.name] = func
	return program


def parse_function(source: str) -> Function:
	"""Parse text holding exactly one function."""
	program = parse_program(source)
	if len(program.functions) != 1:
		raise ParseError(f"expected exactly one function, found {len(program.functions)}")
	return next(iter(program.functions.values()))


def _translate(exc: UnexpectedInput) -> ParseError:
	line = getattr(exc, "line", None)
	column = getattr(exc, "column", None)
	if not isinstance(line, int) or line < 1:
		line, column = None, None
	if isinstance(exc, UnexpectedCharacters):
		msg = f"unexpected character {exc.char!r}"
	elif isinstance(exc, UnexpectedToken):
		if exc.token.type == "$END":
			msg = "unexpected end of input"
		elif exc.token.type == "_NL":
			msg = "unexpected end of line"
		else:
			msg = f"unexpected {str(exc.token)!r}"
	elif isinstance(exc, UnexpectedEOF):
		msg = "unexpected end of input"
	else:
		msg = "syntax error"
	return ParseError(msg, line=line, column=column)


class _FunctionBuilder:
	def __init__(self, tree: Tree) -> None:
		self.tree = tree
		self.blocks: Dict[str, BasicBlock] = {}
		self.target_nodes: List[Tuple[str, Tree]] = []
		self.current: Optional[BasicBlock] = None
		self.ssa = False

	def build(self) -> Function:
		children = list(self.tree.children)
		name = str(children[0])
		params: List[str] = []
		items: List[Tree] = []
		for child in children[1:]:
			if isinstance(child, Tree) and _name(child) == "names":
				params = [str(t) for t in child.children]
			elif isinstance(child, Tree):
				items.append(child)
		if len(set(params)) != len(params):
			raise _error(f"function {name}: duplicate parameter", self.tree)

		labels = {str(i.children[0]) for i in items if _name(i) == "label"}
		for item in items:
			if _name(item) == "label":
				self._start_label(item)
			else:
				self._statement(item, labels)
		if self.current is None:
			self._open(self._fresh("entry", labels))
		if self.current.terminator is None:
			self.current.terminator = Return(None)

		for target, node in self.target_nodes:
			if target not in self.blocks:
				raise _error(f"function {name}: unknown label '{target}'", node)

		func = Function(name=name, params=params, blocks=self.blocks, entry=next(iter(self.blocks)))
		func.link()
		func.ssa = self.ssa
		if self.ssa:
			self._finish_ssa(func)
		return func

	def _fresh(self, base: str, labels) -> str:
		label = base
		n = 1
		while label in labels or label in self.blocks:
			label = f"{base}.{n}"
			n += 1
		return label

	def _open(self, label: str) -> BasicBlock:
		block = BasicBlock(name=label)
		self.blocks[label] = block
		self.current = block
		return block

	def _start_label(self, item: Tree) -> None:
		label = str(item.children[0])
		if label in self.blocks:
			raise _error(f"duplicate label '{label}'", item)
		if self.current is not None and self.current.terminator is None:
			self.current.terminator = Jump(label)
		self._open(label)

	def _statement(self, item: Tree, labels) -> None:
		if self.current is None:
			self._open(self._fresh("entry", labels))
		elif self.current.terminator is not None:
			self._open(self._fresh(f"{self.current.name}.cont", labels))
		node = self._build_node(item)
		if isinstance(node, Terminator):
			self.current.terminator = node
		else:
			if isinstance(node, Phi) and any(not isinstance(i, Phi) for i in self.current.instructions):
				raise _error("phi must precede other instructions in its block", item)
			self.current.instructions.append(node)

	def _operand(self, node: Tree) -> Operand:
		kind = _name(node)
		if kind == "const":
			return Const(int(str(node.children[0])))
		if kind == "undef":
			return UNDEF
		if kind == "var":
			tok = node.children[0]
			if tok.type == "VERSIONED":
				base, _, version = str(tok).rpartition("$")
				self.ssa = True
				return Var(base, int(version))
			return Var(str(tok))
		raise _error(f"unexpected operand {kind}", node)

	def _dest(self, node: Tree) -> Var:
		value = self._operand(node)
		assert isinstance(value, Var)
		return value

	def _args(self, nodes) -> List[Operand]:
		for child in nodes:
			if isinstance(child, Tree) and _name(child) == "args":
				return [self._operand(c) for c in child.children]
		return []

	def _build_node(self, item: Tree):
		kind = _name(item)
		ch = item.children
		if kind == "assign":
			dest = self._dest(ch[0])
			rhs = ch[1]
			rk = _name(rhs)
			rc = rhs.children
			if rk == "binary":
				return BinaryOp(dest=dest, op=str(rc[0]), left=self._operand(rc[1]), right=self._operand(rc[2]))
			if rk == "unary":
				return UnaryOp(dest=dest, op=str(rc[0]), operand=self._operand(rc[1]))
			if rk == "copy":
				return Copy(dest=dest, src=self._operand(rc[0]))
			if rk == "load":
				return Load(dest=dest, address=self._operand(rc[0]))
			if rk == "call":
				return Call(dest=dest, callee=str(rc[0]), args=self._args(rc[1:]))
			if rk == "read":
				return Read(dest=dest)
			if rk == "phi":
				self.ssa = True
				incoming: List[PhiArg] = []
				for group in rc:
					for arg in group.children:
						incoming.append(PhiArg(str(arg.children[0]), self._operand(arg.children[1])))
						self.target_nodes.append((str(arg.children[0]), arg))
				return Phi(dest=dest, incoming=incoming)
			raise _error(f"unexpected right-hand side {rk}", rhs)
		if kind == "store":
			return Store(address=self._operand(ch[0]), value=self._operand(ch[1]))
		if kind == "call_stmt":
			return Call(dest=None, callee=str(ch[0]), args=self._args(ch[1:]))
		if kind == "write":
			return Write(value=self._operand(ch[0]))
		if kind == "jump":
			self.target_nodes.append((str(ch[0]), item))
			return Jump(str(ch[0]))
		if kind == "branch":
			self.target_nodes.append((str(ch[1]), item))
			self.target_nodes.append((str(ch[2]), item))
			return Branch(cond=self._operand(ch[0]), then_target=str(ch[1]), else_target=str(ch[2]))
		if kind == "ret":
			return Return(self._operand(ch[0]) if ch else None)
		raise _error(f"unexpected statement {kind}", item)

	def _finish_ssa(self, func: Function) -> None:
		"""Align phi operands with predecessors and seed version counters."""
		for block in func.blocks.values():
			for phi in block.phis():
				by_block = {arg.block: arg for arg in phi.incoming}
				if len(by_block) != len(phi.incoming):
					raise ParseError(f"function {func.name}: phi for {phi.dest} in '{block.name}' repeats a predecessor")
				ordered = [by_block.pop(p) for p in block.preds if p in by_block]
				phi.incoming = ordered + list(by_block.values())
		for p in func.params:
			func.versions.setdefault(p, 0)
		for _, node in func.all_nodes():
			dest = instr_dest(node)
			for var in ([dest] if dest is not None else []) + instr_uses(node):
				if isinstance(var, Var) and var.version is not None:
					func.versions[var.name] = max(func.versions.get(var.name, 0), var.version)


__all__ = ["parse_program", "parse_function"]
