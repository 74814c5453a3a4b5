from typing import Iterable

from .models import MAX_SUGGESTIONS


def _related(candidate: str, target: str) -> bool:
    return candidate in target or target in candidate


def suggest(
    target: str,
    declared: Iterable[str],
    standard: Iterable[str],
    limit: int = MAX_SUGGESTIONS,
) -> list[str]:
    """
    Propose near-matches for an identifier that did not resolve.

    A candidate qualifies when it contains the target or the target contains
    it (case-sensitive). Declared dependencies come before standard-library
    names; within a bucket the source order is kept.

    Args:
        target: The unresolved root identifier.
        declared: Dependency names from the located manifest.
        standard: Standard-library names of the same ecosystem.
        limit: Maximum number of suggestions.

    Returns:
        At most ``limit`` distinct identifiers.
    """
    if not target:
        return []
    seen: set[str] = set()
    results: list[str] = []
    for bucket in (declared, standard):
        for candidate in bucket:
            if len(results) >= limit:
                return results
            if candidate and candidate not in seen and _related(candidate, target):
                seen.add(candidate)
                results.append(candidate)
    return results
