"""Kubernetes resource quantity parsing."""

from __future__ import annotations

from kubernetes.utils import parse_quantity


def _parse(value: str | int | float | None) -> float:
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    return float(parse_quantity(value))


def parse_cpu(value: str | int | float | None) -> float:
    """Parse a CPU quantity into cores. "250m" -> 0.25, "2k" -> 2000.0.

    Raises ValueError for anything outside the quantity grammar.
    """
    return _parse(value)


def parse_memory(value: str | int | float | None) -> float:
    """Parse a memory quantity into bytes. "128Mi" -> 134217728.0, "1e3" -> 1000.0."""
    return _parse(value)
