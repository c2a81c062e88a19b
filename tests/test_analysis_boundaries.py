"""Guardrails keeping the analysis package framework-free."""

from __future__ import annotations

from pathlib import Path

import pytest

import analysis

pytestmark = pytest.mark.integration

ANALYSIS_DIR = Path(analysis.__file__).resolve().parent


def _modules_containing(*needles: str) -> list[str]:
    offenders: list[str] = []
    for path in ANALYSIS_DIR.rglob("*.py"):
        source = path.read_text(encoding="utf-8")
        if any(needle in source for needle in needles):
            offenders.append(path.name)
    return offenders


def test_analysis_package_has_no_django_imports() -> None:
    """analysis/ stays importable without Django."""

    assert _modules_containing("import django", "from django") == []


def test_analysis_package_has_no_layout_imports() -> None:
    """The data pipeline never depends on the layout engine."""

    assert _modules_containing("from core", "import core") == []
