# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Dominator analysis tests.

Cases:
  - straight line: entry -> b1 -> b2
  - diamond: entry -> then/else -> join
  - loop: entry -> header -> body -> header/exit
  - irreducible: two blocks entered from both sides
  - unreachable blocks are left out
  - every shape is checked against the brute-force reference
"""

from __future__ import annotations

import random

import pytest

from ssamid.analysis import DominatorAnalysis
from ssamid.errors import StructuralError
from ssamid.ir import BasicBlock, Function, Jump
from ssamid.test_support import brute_force_dominators, cfg_from_edges

SHAPES = {
	"straight": [("entry", "b1"), ("b1", "b2")],
	"diamond": [("entry", "then"), ("entry", "else"), ("then", "join"), ("else", "join")],
	"loop": [("entry", "header"), ("header", "body"), ("header", "exit"), ("body", "header")],
	"irreducible": [("entry", "a"), ("entry", "b"), ("a", "b"), ("b", "a"), ("a", "exit")],
	"nested": [
		("entry", "h1"), ("h1", "h2"), ("h1", "out"), ("h2", "b2"), ("h2", "l1"),
		("b2", "h2"), ("l1", "h1"),
	],
	"self_loop_entry": [("entry", "entry"), ("entry", "x")],
}


def test_dominators_straight_line():
	info = DominatorAnalysis().compute(cfg_from_edges(SHAPES["straight"]))
	assert info.idom == {"entry": None, "b1": "entry", "b2": "b1"}
	assert info.dominates("entry", "b2")
	assert not info.strictly_dominates("b2", "b2")


def test_dominators_diamond():
	info = DominatorAnalysis().compute(cfg_from_edges(SHAPES["diamond"]))
	assert info.idom["then"] == "entry"
	assert info.idom["else"] == "entry"
	assert info.idom["join"] == "entry"
	assert info.doms["entry"] == {"entry"}


def test_dominators_loop():
	info = DominatorAnalysis().compute(cfg_from_edges(SHAPES["loop"]))
	assert info.idom["header"] == "entry"
	assert info.idom["body"] == "header"
	assert info.idom["exit"] == "header"
	assert info.children("header") == sorted(info.children("header"), key=info.rpo.index)
	assert info.preorder()[0] == "entry"


def test_irreducible_graph_is_handled():
	info = DominatorAnalysis().compute(cfg_from_edges(SHAPES["irreducible"]))
	assert info.idom["a"] == "entry"
	assert info.idom["b"] == "entry"
	assert info.idom["exit"] == "a"


def test_unreachable_blocks_excluded():
	func = cfg_from_edges(SHAPES["diamond"] + [("dead", "join")])
	info = DominatorAnalysis().compute(func)
	assert "dead" not in info.idom
	assert not info.is_reachable("dead")
	assert not info.dominates("dead", "join")
	assert info.idom["join"] == "entry"


def test_missing_entry_is_structural_error():
	func = Function(name="f", params=[], blocks={"a": BasicBlock(name="a", terminator=Jump("a"))}, entry="entry")
	with pytest.raises(StructuralError):
		DominatorAnalysis().compute(func)


def test_dangling_target_is_structural_error():
	func = Function(name="f", params=[], blocks={"entry": BasicBlock(name="entry", terminator=Jump("ghost"))}, entry="entry")
	with pytest.raises(StructuralError):
		DominatorAnalysis().compute(func)


def _check_against_reference(func: Function) -> None:
	info = DominatorAnalysis().compute(func)
	ref = brute_force_dominators(func)
	assert info.doms == ref
	for b, d in info.idom.items():
		if d is None:
			assert b == func.entry
			continue
		# idom is a strict dominator dominated by every other strict dominator
		assert d in ref[b] and d != b
		assert all(x in ref[d] for x in ref[b] - {b})


@pytest.mark.parametrize("shape", sorted(SHAPES))
def test_shapes_match_brute_force(shape):
	_check_against_reference(cfg_from_edges(SHAPES[shape]))


@pytest.mark.parametrize("seed", range(40))
def test_random_graphs_match_brute_force(seed):
	rng = random.Random(seed)
	n = rng.randint(2, 9)
	names = ["entry"] + [f"n{i}" for i in range(1, n)]
	edges = []
	for name in names:
		for target in rng.sample(names, rng.randint(0, 2)):
			edges.append((name, target))
	_check_against_reference(cfg_from_edges(edges, blocks=names))
