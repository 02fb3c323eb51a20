# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from pathlib import Path

import pytest

from ssamid.text import parse_program

PROGRAMS_DIR = Path(__file__).with_name("programs")


@pytest.fixture
def programs_dir() -> Path:
	return PROGRAMS_DIR


@pytest.fixture
def load_sample():
	"""Parse a sample program from tests/programs by stem."""

	def _load(stem: str):
		return parse_program((PROGRAMS_DIR / f"{stem}.tac").read_text())

	return _load
