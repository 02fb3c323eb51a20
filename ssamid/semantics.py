# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Integer semantics of the IR opcodes.

Shared by constant folding and the interpreter so that a folded literal is
always the value the program would have computed at run time. Values are
signed 64-bit with wrap-around; division truncates toward zero and the
remainder takes the sign of the dividend.
"""

from __future__ import annotations

from .errors import UnsupportedOpcodeError

ARITH_OPS = frozenset({"add", "sub", "mul", "div", "mod"})
COMPARE_OPS = frozenset({"eq", "ne", "lt", "le", "gt", "ge"})
BINARY_OPS = ARITH_OPS | COMPARE_OPS
UNARY_OPS = frozenset({"neg", "not"})
# Opcodes that fault on a zero right operand.
TRAPPING_OPS = frozenset({"div", "mod"})

_MASK = (1 << 64) - 1
_SIGN = 1 << 63


def wrap(value: int) -> int:
	"""Reduce `value` to a signed 64-bit integer."""
	value &= _MASK
	if value & _SIGN:
		value -= 1 << 64
	return value


def _trunc_div(a: int, b: int) -> int:
	q = abs(a) // abs(b)
	return q if (a < 0) == (b < 0) else -q


def eval_binary(op: str, a: int, b: int) -> int:
	"""Evaluate a binary opcode; raises ZeroDivisionError or UnsupportedOpcodeError."""
	if op == "add":
		return wrap(a + b)
	if op == "sub":
		return wrap(a - b)
	if op == "mul":
		return wrap(a * b)
	if op == "div":
		if b == 0:
			raise ZeroDivisionError("division by zero")
		return wrap(_trunc_div(a, b))
	if op == "mod":
		if b == 0:
			raise ZeroDivisionError("remainder by zero")
		return wrap(a - b * _trunc_div(a, b))
	if op == "eq":
		return int(a == b)
	if op == "ne":
		return int(a != b)
	if op == "lt":
		return int(a < b)
	if op == "le":
		return int(a <= b)
	if op == "gt":
		return int(a > b)
	if op == "ge":
		return int(a >= b)
	raise UnsupportedOpcodeError(f"unsupported binary opcode '{op}'", opcode=op)


def eval_unary(op: str, a: int) -> int:
	if op == "neg":
		return wrap(-a)
	if op == "not":
		return int(a == 0)
	raise UnsupportedOpcodeError(f"unsupported unary opcode '{op}'", opcode=op)


__all__ = [
	"ARITH_OPS",
	"COMPARE_OPS",
	"BINARY_OPS",
	"UNARY_OPS",
	"TRAPPING_OPS",
	"wrap",
	"eval_binary",
	"eval_unary",
]
