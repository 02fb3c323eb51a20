# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Textual form of the IR: lark-based parser and printer."""

from .parser import parse_function, parse_program
from .printer import format_block, format_function, format_instr, format_program

__all__ = [
	"parse_program",
	"parse_function",
	"format_instr",
	"format_block",
	"format_function",
	"format_program",
]
