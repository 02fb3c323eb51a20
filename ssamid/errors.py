# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Error kinds raised by the middle-end.

Passes raise; the driver catches `CompileError` and reports. Parse errors carry
a source position so diagnostics can be rendered as `path:line:col`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class CompileError(Exception):
	"""Base class for every diagnostic the pipeline can produce."""

	message: str

	def __str__(self) -> str:
		return self.message


@dataclass
class ParseError(CompileError):
	"""Malformed textual IR."""

	line: Optional[int] = None
	column: Optional[int] = None


@dataclass
class StructuralError(CompileError):
	"""Malformed CFG (missing entry, dangling targets, non-converging dominators)."""

	function: Optional[str] = None
	block: Optional[str] = None


@dataclass
class UndefinedValueError(CompileError):
	"""A use with no reaching definition while the `error` policy is active."""

	function: Optional[str] = None
	block: Optional[str] = None
	variable: Optional[str] = None


@dataclass
class UnsupportedOpcodeError(CompileError):
	"""The arithmetic evaluator does not know this mnemonic."""

	opcode: str = ""


@dataclass
class InvariantViolation(CompileError):
	"""Internal consistency check failed; signals a bug in an earlier pass."""

	function: Optional[str] = None
	block: Optional[str] = None


@dataclass
class InterpError(CompileError):
	"""Runtime fault while executing IR (division by zero, step budget, unknown callee)."""


__all__ = [
	"CompileError",
	"ParseError",
	"StructuralError",
	"UndefinedValueError",
	"UnsupportedOpcodeError",
	"InvariantViolation",
	"InterpError",
]
