"""Collapse rows captured more than once within one extraction batch."""

from .models import CandidateTransaction


def dedupe(candidates: list[CandidateTransaction]) -> list[CandidateTransaction]:
    """Drop repeated ``(date, description, amount)`` rows.

    Keys are compared as exact cleaned strings. For each key the candidate
    with the lowest ordinal survives (the first one seen on a tie), and the
    survivors keep their input order. Running this on its own output
    returns the same list.
    """
    winners: dict[tuple[str, str, str], int] = {}
    for position, candidate in enumerate(candidates):
        current = winners.get(candidate.key)
        if current is None or candidate.ordinal < candidates[current].ordinal:
            winners[candidate.key] = position

    keep = set(winners.values())
    return [c for position, c in enumerate(candidates) if position in keep]
