# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Per-function pass pipeline.

  parsed CFG -> unreachable-block removal -> SSA construction
    -> (constant propagation, LICM) for up to `rounds` rounds
    -> SSA destruction -> CFG for the printer

Each analysis is recomputed by the pass that needs it, so nothing stale is
carried across structural changes. With `verify` on, the CFG and SSA checks
run after every step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import InvariantViolation
from .ir import Function, Program
from .opt.const_prop import ConstantPropagation, ConstPropReport
from .opt.licm import LoopInvariantCodeMotion, LoopInvariantReport
from .ssa.builder import UNDEFINED_POLICIES, SSABuilder
from .ssa.destruct import DestructResult, SSADestructor
from .verify import SSAVerifier, verify_cfg

LOG = logging.getLogger(__name__)

OPT_LEVELS = ("none", "const_prop", "loop_inv", "all")


@dataclass
class PipelineOptions:
	const_prop: bool = False
	licm: bool = False
	# Upper bound on optimization rounds; a round that changes nothing stops early.
	rounds: int = 1
	undefined_policy: str = "sentinel"
	prune_phis: bool = False
	verify: bool = True
	# False leaves the result in SSA form.
	destruct: bool = True

	@classmethod
	def for_level(cls, level: str, **overrides) -> "PipelineOptions":
		if level not in OPT_LEVELS:
			raise ValueError(f"unknown optimization level '{level}'")
		opts = cls(
			const_prop=level in ("const_prop", "all"),
			licm=level in ("loop_inv", "all"),
		)
		for key, value in overrides.items():
			setattr(opts, key, value)
		return opts

	def validate(self) -> None:
		if self.rounds < 1:
			raise ValueError("rounds must be at least 1")
		if self.undefined_policy not in UNDEFINED_POLICIES:
			raise ValueError(f"unknown undefined-value policy '{self.undefined_policy}'")


@dataclass
class FunctionReport:
	name: str
	phis_placed: int = 0
	phis_pruned: int = 0
	undefined_uses: int = 0
	rounds: int = 0
	const_prop: List[ConstPropReport] = field(default_factory=list)
	licm: List[LoopInvariantReport] = field(default_factory=list)
	destruct: Optional[DestructResult] = None

	def format(self) -> str:
		lines = [
			f"function {self.name}: {self.phis_placed} phis placed"
			+ (f" ({self.phis_pruned} pruned)" if self.phis_pruned else "")
			+ (f", {self.undefined_uses} undefined uses" if self.undefined_uses else "")
			+ f", {self.rounds} optimization rounds",
		]
		for rep in self.const_prop:
			lines.append(rep.format())
		for rep in self.licm:
			lines.append(rep.format())
		if self.destruct is not None:
			d = self.destruct
			lines.append(
				f"ssa-destruct {self.name}: {d.phis_removed} phis removed, {d.copies} copies, "
				f"{d.temporaries} temporaries, {d.split_edges} edges split"
			)
		return "\n".join(lines)


@dataclass
class PipelineResult:
	program: Program
	reports: List[FunctionReport] = field(default_factory=list)

	def format_reports(self) -> str:
		return "\n".join(r.format() for r in self.reports)


def _check(func: Function, options: PipelineOptions, stage: str) -> None:
	if not options.verify:
		return
	try:
		if func.ssa:
			SSAVerifier(func).verify()
		else:
			verify_cfg(func)
	except InvariantViolation as exc:
		raise InvariantViolation(f"after {stage}: {exc.message}", function=exc.function, block=exc.block) from exc


def optimize_function(func: Function, options: PipelineOptions) -> FunctionReport:
	report = FunctionReport(name=func.name)
	_check(func, options, "parsing")
	if not func.ssa:
		built = SSABuilder(undefined_policy=options.undefined_policy, prune_dead_phis=options.prune_phis).run(func)
		report.phis_placed = built.phi_count
		report.phis_pruned = built.pruned_phis
		report.undefined_uses = len(built.undefined_uses)
		_check(func, options, "SSA construction")

	if options.const_prop or options.licm:
		for _ in range(options.rounds):
			report.rounds += 1
			changed = False
			if options.const_prop:
				cp = ConstantPropagation().run(func).report
				report.const_prop.append(cp)
				changed = changed or cp.changed
				_check(func, options, "constant propagation")
			if options.licm:
				lr = LoopInvariantCodeMotion().run(func)
				report.licm.append(lr)
				changed = changed or lr.changed
				_check(func, options, "loop-invariant code motion")
			if not changed:
				break

	if options.destruct:
		report.destruct = SSADestructor().run(func)
		_check(func, options, "SSA destruction")
	LOG.info("%s: done (%d rounds)", func.name, report.rounds)
	return report


def run_pipeline(program: Program, options: Optional[PipelineOptions] = None) -> PipelineResult:
	options = options or PipelineOptions()
	options.validate()
	result = PipelineResult(program=program)
	for func in program.functions.values():
		result.reports.append(optimize_function(func, options))
	return result


__all__ = [
	"OPT_LEVELS",
	"PipelineOptions",
	"FunctionReport",
	"PipelineResult",
	"optimize_function",
	"run_pipeline",
]
