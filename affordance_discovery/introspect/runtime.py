"""Classify runtime-visible members into export kinds.

Used by the load-the-module fallback tier of the node and python helper scripts.
Ambiguous shapes fall back to ``constant``.
"""

from ..models import ExportKind


def classify_shape(tag: str) -> ExportKind:
    match tag:
        case "function":
            return ExportKind.FUNCTION
        case "class":
            return ExportKind.CLASS
        case "object":
            return ExportKind.NAMESPACE
        case _:
            return ExportKind.CONSTANT
