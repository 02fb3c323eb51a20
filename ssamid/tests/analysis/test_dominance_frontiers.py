# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Dominance frontier tests.

Cases:
  - diamond: DF(then) = DF(else) = {join}
  - loop: DF(body) = DF(header) = {header}
  - frontiers match the definition on random graphs
  - iterated frontier closes over frontiers of frontiers
"""

from __future__ import annotations

import random

import pytest

from ssamid.analysis import DominanceFrontierAnalysis, DominatorAnalysis
from ssamid.test_support import brute_force_dominators, cfg_from_edges


def _frontiers(func):
	dom = DominatorAnalysis().compute(func)
	return dom, DominanceFrontierAnalysis().compute(func, dom)


def test_diamond_frontiers():
	func = cfg_from_edges([("entry", "then"), ("entry", "else"), ("then", "join"), ("else", "join")])
	_, info = _frontiers(func)
	assert info.df["then"] == {"join"}
	assert info.df["else"] == {"join"}
	assert info.df["entry"] == set()
	assert info.df["join"] == set()


def test_loop_frontiers():
	func = cfg_from_edges([("entry", "header"), ("header", "body"), ("header", "exit"), ("body", "header")])
	_, info = _frontiers(func)
	assert info.df["body"] == {"header"}
	assert info.df["header"] == {"header"}
	assert info.df["exit"] == set()


def test_unreachable_blocks_not_in_frontiers():
	func = cfg_from_edges([("entry", "a"), ("dead", "a"), ("a", "b")])
	_, info = _frontiers(func)
	assert "dead" not in info.df
	assert all("dead" not in ys for ys in info.df.values())


def test_iterated_frontier():
	# entry -> a -> m1 -> m2, entry -> b -> m1, entry -> m2
	func = cfg_from_edges([
		("entry", "a"), ("entry", "x"), ("x", "b"), ("x", "m2"),
		("a", "m1"), ("b", "m1"), ("m1", "m2"),
	])
	_, info = _frontiers(func)
	assert info.df["a"] == {"m1"}
	assert info.df["m1"] == {"m2"}
	assert info.iterated({"a"}) == {"m1", "m2"}


@pytest.mark.parametrize("seed", range(30))
def test_frontiers_match_definition(seed):
	rng = random.Random(1000 + seed)
	names = ["entry"] + [f"n{i}" for i in range(1, rng.randint(2, 8))]
	edges = [(a, b) for a in names for b in rng.sample(names, rng.randint(0, 2))]
	func = cfg_from_edges(edges, blocks=names)
	dom, info = _frontiers(func)
	doms = brute_force_dominators(func)
	live = set(doms)
	for x in live:
		expected = set()
		for y in live:
			preds = [p for p in func.blocks[y].preds if p in live]
			if any(x in doms[p] for p in preds) and not (x in doms[y] and x != y):
				expected.add(y)
		assert info.df[x] == expected, (x, edges)
