# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Command-line driver.

  python -m ssamid prog.tac --opt all -o prog.out.tac
  python -m ssamid prog.tac --const-prop --target ssa --report
  python -m ssamid prog.tac --opt all --run --input 5,7

Targets:
  raw  print the parsed program without running any pass
  ssa  stop after optimization, leaving SSA form
  tac  destruct SSA and print plain three-address code (default)

Exit status is 0 on success and 1 on any diagnostic; diagnostics go to
stderr as `path:line:col: error: message`.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .errors import CompileError, ParseError
from .interp import Interpreter
from .pipeline import OPT_LEVELS, PipelineOptions, run_pipeline
from .ssa.builder import UNDEFINED_POLICIES
from .text import format_program, parse_program

LOG = logging.getLogger(__name__)

TARGETS = ("raw", "ssa", "tac")


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="ssamid", description="SSA construction, optimization and destruction for three-address IR")
	p.add_argument("source", type=Path, help="IR source file")
	p.add_argument("-o", "--output", type=Path, help="write the result here instead of stdout")
	p.add_argument("--opt", choices=OPT_LEVELS, default="none", help="optimization preset")
	p.add_argument("--const-prop", action="store_true", help="enable sparse constant propagation")
	p.add_argument("--licm", action="store_true", help="enable loop-invariant code motion")
	p.add_argument("--target", choices=TARGETS, default="tac", help="output form")
	p.add_argument("--rounds", type=int, default=1, help="maximum optimization rounds")
	p.add_argument("--undefined", choices=UNDEFINED_POLICIES, default="sentinel", help="handling of uses without a definition")
	p.add_argument("--prune-phis", action="store_true", help="remove dead phis after SSA construction")
	p.add_argument("--no-verify", action="store_true", help="skip consistency checks between passes")
	p.add_argument("--report", action="store_true", help="print pass reports to stderr")
	p.add_argument("--show-preds", action="store_true", help="annotate block labels with their predecessors")
	p.add_argument("--run", action="store_true", help="interpret the result and print written values")
	p.add_argument("--entry", default="main", help="function to start from with --run")
	p.add_argument("--input", default="", help="comma-separated input values for --run")
	p.add_argument("-v", "--verbose", action="store_true", help="verbose output")
	p.add_argument("-d", "--debug", action="store_true", help="debug output")
	return p


def _diagnostic(path: Path, exc: CompileError) -> str:
	if isinstance(exc, ParseError) and exc.line is not None:
		col = exc.column if exc.column is not None else 1
		return f"{path}:{exc.line}:{col}: error: {exc.message}"
	return f"{path}: error: {exc.message}"


def _parse_inputs(text: str) -> List[int]:
	return [int(part) for part in text.split(",") if part.strip()]


def main(argv: Optional[List[str]] = None) -> int:
	parser = _build_parser()
	args = parser.parse_args(argv)

	level = logging.DEBUG if args.debug else logging.INFO if args.verbose else logging.WARNING
	logging.basicConfig(level=level, format="%(levelname)s: %(name)s: %(message)s", stream=sys.stderr)

	if args.rounds < 1:
		parser.error("--rounds must be at least 1")
	try:
		inputs = _parse_inputs(args.input)
	except ValueError:
		parser.error(f"--input expects comma-separated integers, got '{args.input}'")

	try:
		source = args.source.read_text()
	except OSError as exc:
		print(f"{args.source}: error: {exc.strerror or exc}", file=sys.stderr)
		return 1

	options = PipelineOptions.for_level(
		args.opt,
		rounds=args.rounds,
		undefined_policy=args.undefined,
		prune_phis=args.prune_phis,
		verify=not args.no_verify,
		destruct=args.target == "tac",
	)
	options.const_prop = options.const_prop or args.const_prop
	options.licm = options.licm or args.licm

	try:
		program = parse_program(source)
		if args.target != "raw":
			result = run_pipeline(program, options)
			if args.report:
				print(result.format_reports(), file=sys.stderr)
		if args.run:
			res = Interpreter(program, inputs=inputs).run(entry=args.entry)
			for value in res.output:
				print(value)
			if res.value is not None:
				LOG.info("returned %d", res.value)
			return 0
	except CompileError as exc:
		print(_diagnostic(args.source, exc), file=sys.stderr)
		return 1

	text = format_program(program, show_preds=args.show_preds)
	if args.output is not None:
		args.output.write_text(text)
	else:
		sys.stdout.write(text)
	return 0


if __name__ == "__main__":
	sys.exit(main())
