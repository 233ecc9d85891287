from __future__ import annotations

import sys
from typing import Callable, Mapping, Protocol, Sequence, TextIO

from pharmacy_import.matching.categories import CategoryCandidate
from pharmacy_import.pipeline.orchestrator import CategoryDecision


class Approver(Protocol):
    """
    Decides the fate of each new category.

    Returns a decision per `CategoryCandidate.key`, or `None` to cancel the import.
    """

    def decide(self, candidates: Sequence[CategoryCandidate]) -> Mapping[str, CategoryDecision] | None: ...


class ApproveAll:
    """Creates every proposed category."""

    def decide(self, candidates: Sequence[CategoryCandidate]) -> dict[str, CategoryDecision]:
        return {c.key: CategoryDecision.approve_new() for c in candidates}


class RejectAll:
    """Creates nothing; rows using an unknown category are rejected."""

    def decide(self, candidates: Sequence[CategoryCandidate]) -> dict[str, CategoryDecision]:
        return {c.key: CategoryDecision.reject() for c in candidates}


def describe_candidate(candidate: CategoryCandidate) -> str:
    line = f'"{candidate.normalized_name}" ({candidate.member_row_count} rows)'
    if candidate.proposed_name.strip() != candidate.normalized_name:
        line += f', written as "{candidate.proposed_name}"'
    if candidate.similar_to is not None and candidate.similarity_score is not None:
        line += f', similar to "{candidate.similar_to.name}" ({candidate.similarity_score:.0%})'
    return line


class PromptApprover:
    """Asks on the terminal, one candidate at a time."""

    def __init__(self, input_fn: Callable[[str], str] = input, out: TextIO | None = None) -> None:
        self.input_fn = input_fn
        self.out = out or sys.stdout

    def _ask(self, candidate: CategoryCandidate) -> CategoryDecision | None:
        options = "[a]pprove, [r]eject, [c]ancel import"
        if candidate.similar_to is not None:
            options = f'[a]pprove, [m]ap to "{candidate.similar_to.name}", [r]eject, [c]ancel import'

        while True:
            answer = self.input_fn(f"  {options}? ").strip().lower()
            if answer in ("a", "approve"):
                return CategoryDecision.approve_new()
            if answer in ("r", "reject"):
                return CategoryDecision.reject()
            if answer in ("m", "map") and candidate.similar_to is not None:
                return CategoryDecision.map_to(candidate.similar_to)
            if answer in ("c", "cancel"):
                return None
            print(f"  unrecognized answer: {answer!r}", file=self.out)

    def decide(self, candidates: Sequence[CategoryCandidate]) -> dict[str, CategoryDecision] | None:
        print(f"{len(candidates)} new categories found:", file=self.out)
        decisions: dict[str, CategoryDecision] = {}
        for candidate in candidates:
            print(f"- {describe_candidate(candidate)}", file=self.out)
            decision = self._ask(candidate)
            if decision is None:
                return None
            decisions[candidate.key] = decision
        return decisions
