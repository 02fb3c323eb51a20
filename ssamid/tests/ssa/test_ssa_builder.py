# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
SSA construction.

Cases:
  - diamond: exactly one phi at the join, operands in predecessor order
  - loop: phi at the header for the loop-carried variable only
  - parameters are version 0
  - use before definition binds to the sentinel or raises under `error`
  - entry with predecessors gets a fresh entry block
  - well-formedness over every sample and random programs
"""

from __future__ import annotations

import pytest

from ssamid.errors import InvariantViolation, UndefinedValueError
from ssamid.ir import UNDEF, BinaryOp, Const, Copy, Var, instr_dest
from ssamid.ssa.builder import SSABuilder
from ssamid.test_support import parse_fn, random_program
from ssamid.verify import SSAVerifier

DIAMOND = """
function f(c) {
	branch c, then, else
then:
	x = 1
	jump join
else:
	x = 2
	jump join
join:
	y = add x, 0
	return y
}
"""


def _defining(func, var):
	for block in func.blocks.values():
		for instr in block.instructions:
			if instr_dest(instr) == var:
				return instr
	return None


def test_diamond_single_phi_in_pred_order():
	func = parse_fn(DIAMOND)
	result = SSABuilder().run(func)
	join = func.blocks["join"]
	phis = join.phis()
	assert len(phis) == 1
	assert result.phi_count == 1
	phi = phis[0]
	assert phi.dest.name == "x"
	assert [a.block for a in phi.incoming] == join.preds == ["then", "else"]
	then_def = _defining(func, phi.incoming[0].value)
	else_def = _defining(func, phi.incoming[1].value)
	assert isinstance(then_def, Copy) and then_def.src == Const(1)
	assert isinstance(else_def, Copy) and else_def.src == Const(2)
	add = join.instructions[1]
	assert isinstance(add, BinaryOp) and add.left == phi.dest
	SSAVerifier(func).verify()


def test_loop_header_phi_and_params():
	func = parse_fn(
		"""
function f(n) {
	i = 0
	k = mul n, 2
head:
	c = lt i, n
	branch c, body, done
body:
	i = add i, 1
	jump head
done:
	return i
}
"""
	)
	SSABuilder().run(func)
	head = func.blocks["head"]
	names = sorted(phi.dest.name for phi in head.phis())
	# minimal placement: i is redefined in the loop, c is defined in the header itself
	assert "i" in names
	assert "n" not in names and "k" not in names
	k = func.blocks["entry"].instructions[1]
	assert k.left == Var("n", 0)
	assert func.versions["n"] == 0
	SSAVerifier(func).verify()


def test_undefined_use_becomes_sentinel():
	func = parse_fn("function f(c) {\n\tbranch c, a, b\na:\n\tx = 1\n\tjump b\nb:\n\ty = add x, z\n\treturn y\n}\n")
	result = SSABuilder().run(func)
	b = func.blocks["b"]
	phi = b.phis()[0]
	assert phi.dest.name == "x"
	assert phi.value_from("entry") == UNDEF
	add = b.instructions[-1]
	assert add.right == UNDEF
	assert ("b", "z") in result.undefined_uses
	SSAVerifier(func).verify()


def test_undefined_use_error_policy():
	func = parse_fn("function f() {\n\ty = add z, 1\n\treturn y\n}\n")
	with pytest.raises(UndefinedValueError) as info:
		SSABuilder(undefined_policy="error").run(func)
	assert info.value.variable == "z"


def test_error_policy_accepts_partial_definitions_on_phi_edges():
	func = parse_fn("function f(c) {\n\tbranch c, a, b\na:\n\tx = 1\n\tjump b\nb:\n\treturn\n}\n")
	SSABuilder(undefined_policy="error").run(func)
	SSAVerifier(func).verify()


def test_entry_with_predecessors_gets_new_entry():
	func = parse_fn("function f(n) {\ntop:\n\tn = sub n, 1\n\tbranch n, top, out\nout:\n\treturn n\n}\n")
	SSABuilder().run(func)
	assert func.entry != "top"
	assert func.blocks[func.entry].preds == []
	top = func.blocks["top"]
	phi = top.phis()[0]
	assert phi.value_from(func.entry) == Var("n", 0)
	SSAVerifier(func).verify()


def test_rejects_function_already_in_ssa(load_sample):
	func = load_sample("swap").functions["main"]
	with pytest.raises(InvariantViolation):
		SSABuilder().run(func)


def test_prune_dead_phis_option():
	src = "function f(c) {\n\tbranch c, a, b\na:\n\tx = 1\n\tjump b\nb:\n\treturn 0\n}\n"
	kept = parse_fn(src)
	SSABuilder().run(kept)
	assert len(kept.blocks["b"].phis()) == 1
	pruned = parse_fn(src)
	result = SSABuilder(prune_dead_phis=True).run(pruned)
	assert pruned.blocks["b"].phis() == []
	assert result.pruned_phis == 1
	SSAVerifier(pruned).verify()


def test_unreachable_blocks_removed_first():
	func = parse_fn("function f() {\n\treturn 1\n\tx = 2\n\tjump f2\nf2:\n\treturn x\n}\n")
	SSABuilder().run(func)
	assert list(func.blocks) == ["entry"]


def test_deep_chain_does_not_recurse():
	lines = ["function f() {", "\tx = 0"]
	for i in range(1100):
		lines.append(f"b{i}:")
		lines.append("\tx = add x, 1")
	lines.append("\treturn x")
	lines.append("}")
	func = parse_fn("\n".join(lines) + "\n")
	SSABuilder().run(func)
	SSAVerifier(func).verify()


@pytest.mark.parametrize("stem", ["gcd", "collatz", "prime", "sum_loop", "nested"])
def test_samples_are_well_formed(load_sample, stem):
	program = load_sample(stem)
	for func in program.functions.values():
		SSABuilder().run(func)
		SSAVerifier(func).verify()
		defs = [instr_dest(i) for b in func.blocks.values() for i in b.instructions if instr_dest(i) is not None]
		assert len(defs) == len(set(defs))


@pytest.mark.parametrize("seed", range(25))
def test_random_programs_are_well_formed(seed):
	program = random_program(seed)
	func = program.functions["main"]
	SSABuilder().run(func)
	SSAVerifier(func).verify()
