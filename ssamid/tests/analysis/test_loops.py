# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Natural loops and the nesting forest.

Cases:
  - single loop with one latch
  - nested loops: parent/child links and innermost-first order
  - two back edges to one header form one loop
  - irreducible cycles produce no loop and are reported
  - preheader insertion: reuse, synthesis, phi merge
"""

from __future__ import annotations

from ssamid.analysis import DominatorAnalysis, LoopAnalysis
from ssamid.cfg import insert_preheader
from ssamid.ir import Const, Phi, PhiArg, Var
from ssamid.test_support import cfg_from_edges
from ssamid.verify import verify_cfg


def _loops(func):
	dom = DominatorAnalysis().compute(func)
	return LoopAnalysis().compute(func, dom)


def test_single_loop():
	func = cfg_from_edges([("entry", "header"), ("header", "body"), ("header", "exit"), ("body", "header")])
	forest = _loops(func)
	assert len(forest.loops) == 1
	loop = forest.loops[0]
	assert loop.header == "header"
	assert loop.blocks == {"header", "body"}
	assert loop.latches == ["body"]
	assert loop.depth == 1
	assert loop.exits(func) == [("header", "exit")]


def test_nested_loops():
	func = cfg_from_edges([
		("entry", "h1"), ("h1", "h2"), ("h1", "out"), ("h2", "b2"), ("h2", "l1"),
		("b2", "h2"), ("l1", "h1"),
	])
	forest = _loops(func)
	outer = forest.loop_for_header("h1")
	inner = forest.loop_for_header("h2")
	assert inner.blocks == {"h2", "b2"}
	assert outer.blocks == {"h1", "h2", "b2", "l1"}
	assert inner.parent is outer
	assert outer.children == [inner]
	assert [l.header for l in forest.innermost_first()] == ["h2", "h1"]
	assert forest.roots() == [outer]
	assert forest.innermost_loop_of("b2") is inner
	assert forest.innermost_loop_of("l1") is outer
	assert forest.innermost_loop_of("out") is None


def test_back_edges_to_same_header_merge():
	func = cfg_from_edges([
		("entry", "h"), ("h", "a"), ("h", "out"), ("a", "h"), ("a", "b"), ("b", "h"),
	])
	forest = _loops(func)
	assert len(forest.loops) == 1
	assert sorted(forest.loops[0].latches) == ["a", "b"]
	assert forest.loops[0].blocks == {"h", "a", "b"}


def test_self_loop():
	func = cfg_from_edges([("entry", "s"), ("s", "s"), ("s", "out")])
	forest = _loops(func)
	assert forest.loops[0].blocks == {"s"}
	assert forest.loops[0].latches == ["s"]


def test_irreducible_cycle_is_not_a_loop():
	func = cfg_from_edges([("entry", "a"), ("entry", "b"), ("a", "b"), ("b", "a"), ("a", "exit")])
	forest = _loops(func)
	assert forest.loops == []
	assert len(forest.irreducible_edges) == 1


def test_preheader_reuses_single_predecessor_block():
	func = cfg_from_edges([("entry", "pre"), ("pre", "header"), ("header", "body"), ("header", "exit"), ("body", "header")])
	name, created = insert_preheader(func, "header", {"header", "body"})
	assert (name, created) == ("pre", False)


def test_preheader_synthesized_after_entry():
	func = cfg_from_edges([("entry", "header"), ("header", "body"), ("header", "exit"), ("body", "header")])
	name, created = insert_preheader(func, "header", {"header", "body"})
	assert created
	assert name == "header.preheader"
	assert func.blocks["entry"].terminator.target == name
	assert func.blocks["header"].preds == [name, "body"]
	assert func.blocks[name].preds == ["entry"]
	verify_cfg(func)
	dom = DominatorAnalysis().compute(func)
	assert dom.idom["header"] == name


def test_preheader_merges_phi_operands_from_several_entries():
	func = cfg_from_edges([
		("entry", "a"), ("entry", "b"), ("a", "header"), ("b", "header"),
		("header", "body"), ("header", "exit"), ("body", "header"),
	])
	func.ssa = True
	func.versions = {"x": 3, "y": 1}
	header = func.blocks["header"]
	assert header.preds == ["a", "b", "body"]
	header.instructions = [
		Phi(Var("x", 3), [PhiArg("a", Const(1)), PhiArg("b", Const(2)), PhiArg("body", Var("x", 3))]),
		Phi(Var("y", 1), [PhiArg("a", Const(5)), PhiArg("b", Const(5)), PhiArg("body", Var("y", 1))]),
	]
	name, created = insert_preheader(func, "header", {"header", "body"})
	assert created
	pre = func.blocks[name]
	assert pre.preds == ["a", "b"]
	assert header.preds == [name, "body"]
	merged = pre.instructions[0]
	assert isinstance(merged, Phi)
	assert merged.dest == Var("x", 4)
	assert [(a.block, a.value) for a in merged.incoming] == [("a", Const(1)), ("b", Const(2))]
	x_phi, y_phi = header.phis()
	assert [(a.block, a.value) for a in x_phi.incoming] == [(name, Var("x", 4)), ("body", Var("x", 3))]
	# identical outside operands need no merge phi
	assert [(a.block, a.value) for a in y_phi.incoming] == [(name, Const(5)), ("body", Var("y", 1))]
	assert len(pre.phis()) == 1
	verify_cfg(func)
