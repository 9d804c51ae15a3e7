"""Predicate base class and the conjunction used for the clean check."""

from abc import ABC, abstractmethod
from typing import List, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.types import StatusSnapshot


class Predicate(ABC):
    """One condition a repository status may or may not meet."""

    @abstractmethod
    def check(self, status: 'StatusSnapshot') -> Tuple[bool, str]:
        """Evaluate the condition.

        Args:
            status: Repository status snapshot

        Returns:
            (passes, reason) where reason describes the outcome
        """


class AllOf(Predicate):
    """Conjunction of predicates, evaluated in order."""

    def __init__(self, *predicates: Predicate):
        self.predicates: List[Predicate] = list(predicates)

    def check(self, status: 'StatusSnapshot') -> Tuple[bool, str]:
        """Pass only if every predicate passes; report the first failure."""
        for predicate in self.predicates:
            passes, reason = predicate.check(status)
            if not passes:
                return False, reason
        return True, "All conditions met"

    def failures(self, status: 'StatusSnapshot') -> List[str]:
        """Reasons of all failing predicates, in evaluation order."""
        return [
            reason
            for passes, reason in (predicate.check(status) for predicate in self.predicates)
            if not passes
        ]


def all_of(*predicates: Predicate) -> AllOf:
    """Combine predicates so that all of them must pass."""
    return AllOf(*predicates)
