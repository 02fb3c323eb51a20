# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Pretty-printer for the textual IR; its output parses back with `parse_program`."""

from __future__ import annotations

from typing import List, Optional

from ..ir import (
	BasicBlock,
	BinaryOp,
	Branch,
	Call,
	Copy,
	Function,
	Jump,
	Load,
	Node,
	Operand,
	Phi,
	Program,
	Read,
	Return,
	Store,
	UnaryOp,
	Write,
)


def format_operand(op: Optional[Operand]) -> str:
	return "" if op is None else str(op)


def format_instr(instr: Node) -> str:
	if isinstance(instr, BinaryOp):
		return f"{instr.dest} = {instr.op} {instr.left}, {instr.right}"
	if isinstance(instr, UnaryOp):
		return f"{instr.dest} = {instr.op} {instr.operand}"
	if isinstance(instr, Copy):
		return f"{instr.dest} = {instr.src}"
	if isinstance(instr, Load):
		return f"{instr.dest} = load {instr.address}"
	if isinstance(instr, Store):
		return f"store {instr.address}, {instr.value}"
	if isinstance(instr, Call):
		args = ", ".join(str(a) for a in instr.args)
		if instr.dest is None:
			return f"call {instr.callee}({args})"
		return f"{instr.dest} = call {instr.callee}({args})"
	if isinstance(instr, Read):
		return f"{instr.dest} = read"
	if isinstance(instr, Write):
		return f"write {instr.value}"
	if isinstance(instr, Phi):
		args = ", ".join(f"{a.block}: {a.value}" for a in instr.incoming)
		return f"{instr.dest} = phi [{args}]"
	if isinstance(instr, Jump):
		return f"jump {instr.target}"
	if isinstance(instr, Branch):
		return f"branch {instr.cond}, {instr.then_target}, {instr.else_target}"
	if isinstance(instr, Return):
		if instr.value is None:
			return "return"
		return f"return {instr.value}"
	return f"<unknown {type(instr).__name__}>"


def format_block(block: BasicBlock, show_preds: bool = False) -> str:
	head = f"{block.name}:"
	if show_preds and block.preds:
		head += f"  # preds: {', '.join(block.preds)}"
	lines = [head]
	for instr in block.instructions:
		lines.append(f"\t{format_instr(instr)}")
	if block.terminator is not None:
		lines.append(f"\t{format_instr(block.terminator)}")
	return "\n".join(lines)


def format_function(func: Function, show_preds: bool = False) -> str:
	lines: List[str] = [f"function {func.name}({', '.join(func.params)}) {{"]
	# Entry first so that re-parsing picks the same entry block.
	order = [func.entry] + [b for b in func.blocks if b != func.entry]
	for name in order:
		lines.append(format_block(func.blocks[name], show_preds=show_preds))
	lines.append("}")
	return "\n".join(lines)


def format_program(program: Program, show_preds: bool = False) -> str:
	return "\n\n".join(format_function(f, show_preds=show_preds) for f in program.functions.values()) + "\n"


__all__ = ["format_operand", "format_instr", "format_block", "format_function", "format_program"]
