# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Edge mutations keep terminators, predecessor lists and phis in step.

Cases:
  - successors of a branch with equal arms are deduplicated
  - split_edge renames the phi operand and the predecessor in place
  - fold_branch drops the dead edge and its phi operand
  - delete_block detaches the block from its successors
  - insert_block places the new block before the requested one
"""

from __future__ import annotations

import pytest

from ssamid.errors import InvariantViolation, StructuralError
from ssamid.ir import (
	BasicBlock,
	Branch,
	Const,
	Function,
	Jump,
	Phi,
	PhiArg,
	Return,
	Var,
	instr_uses,
	rewrite_uses,
)
from ssamid.verify import verify_cfg


def _diamond_with_phi() -> Function:
	entry = BasicBlock(name="entry", terminator=Branch(Var("c", 0), "then", "else"))
	then = BasicBlock(name="then", terminator=Jump("join"))
	else_b = BasicBlock(name="else", terminator=Jump("join"))
	join = BasicBlock(
		name="join",
		instructions=[Phi(Var("x", 3), [PhiArg("then", Const(1)), PhiArg("else", Const(2))])],
		terminator=Return(Var("x", 3)),
	)
	func = Function(name="f", params=["c"], blocks={"entry": entry, "then": then, "else": else_b, "join": join}, entry="entry", ssa=True)
	func.link()
	return func


def test_branch_with_equal_arms_has_one_successor():
	block = BasicBlock(name="b", terminator=Branch(Var("c"), "x", "x"))
	assert block.successors() == ["x"]


def test_link_orders_predecessors_by_layout():
	func = _diamond_with_phi()
	assert func.blocks["join"].preds == ["then", "else"]
	assert func.blocks["then"].preds == ["entry"]
	assert func.blocks["entry"].preds == []


def test_split_edge_updates_phi_and_preds():
	func = _diamond_with_phi()
	mid = func.split_edge("then", "join")
	join = func.blocks["join"]
	assert join.preds == [mid.name, "else"]
	assert [a.block for a in join.phis()[0].incoming] == [mid.name, "else"]
	assert func.blocks["then"].terminator.target == mid.name
	assert list(func.blocks).index(mid.name) == list(func.blocks).index("join") - 1
	verify_cfg(func)


def test_split_edge_requires_existing_edge():
	func = _diamond_with_phi()
	with pytest.raises(InvariantViolation):
		func.split_edge("then", "else")


def test_fold_branch_removes_dead_phi_operand():
	func = _diamond_with_phi()
	kept = func.fold_branch("entry", taken=True)
	assert kept == "then"
	assert isinstance(func.blocks["entry"].terminator, Jump)
	assert func.blocks["else"].preds == []
	phi = func.blocks["join"].phis()[0]
	# else still jumps to join; only the entry->else edge went away
	assert [a.block for a in phi.incoming] == ["then", "else"]
	func.delete_block("else")
	assert [a.block for a in phi.incoming] == ["then"]
	assert func.blocks["join"].preds == ["then"]
	verify_cfg(func)


def test_fold_branch_on_jump_is_an_error():
	func = _diamond_with_phi()
	with pytest.raises(InvariantViolation):
		func.fold_branch("then", taken=True)


def test_unknown_block_is_structural_error():
	func = _diamond_with_phi()
	with pytest.raises(StructuralError):
		func.block("nowhere")


def test_insert_block_before():
	func = _diamond_with_phi()
	func.insert_block(BasicBlock(name="extra", terminator=Return(None)), before="then")
	assert list(func.blocks) == ["entry", "extra", "then", "else", "join"]
	with pytest.raises(InvariantViolation):
		func.insert_block(BasicBlock(name="extra", terminator=Return(None)))


def test_fresh_names():
	func = _diamond_with_phi()
	assert func.fresh_label("then") == "then.1"
	assert func.fresh_label("new") == "new"
	func.versions["x"] = 3
	assert func.fresh_var("x") == Var("x", 4)
	assert func.fresh_var("y") == Var("y", 1)


def test_rewrite_uses_covers_phi_and_terminator():
	func = _diamond_with_phi()
	join = func.blocks["join"]
	rewrite_uses(join.terminator, lambda u: Const(7) if u == Var("x", 3) else u)
	assert join.terminator.value == Const(7)
	rewrite_uses(join.phis()[0], lambda u: Const(0))
	assert instr_uses(join.phis()[0]) == [Const(0), Const(0)]


def test_operand_rendering():
	assert str(Var("x")) == "x"
	assert str(Var("x", 2)) == "x$2"
	assert str(Const(-3)) == "-3"
