"""
Exception taxonomy for labelsim.

Every failure the core can raise derives from LabelSimError. The split mirrors who
has to act on it:

- RejectionError (and its ValidationError / OverdraftError subclasses): the tick was
  refused. Nothing was mutated; the caller still holds the prior snapshot and can
  retry with a different action batch.
- ConfigError: the balance bundle is missing or malformed. Fatal for the tick.
- InvariantViolation: an internal bug class (trait outside its clamp, a delayed
  effect firing twice). The tick is aborted rather than committing corrupt state.
- PersistenceError: the boundary commit failed. The week was computed but is not
  durable; the caller decides whether to retry.
"""

from typing import List, Optional


class LabelSimError(Exception):
    """Base class for all labelsim errors."""


class RejectionError(LabelSimError):
    """Raised when a week cannot be advanced from the given snapshot."""

    def __init__(self, *, week: int, reason: str) -> None:
        self.week = week
        self.reason = reason
        super().__init__(f"Week {week} rejected: {reason}")


class ValidationError(RejectionError):
    """Raised when an action batch is malformed or ineligible.

    The whole batch is refused; partial application never happens.
    """

    def __init__(self, *, week: int, errors: List[str]) -> None:
        self.errors = errors
        message_lines = [f"{len(errors)} invalid action(s):"]
        for error in errors:
            message_lines.append(f"  - {error}")
        super().__init__(week=week, reason="\n".join(message_lines))


class OverdraftError(RejectionError):
    """Raised when weekly costs push money below the allowed overdraft."""

    def __init__(self, *, week: int, money: int, limit: int) -> None:
        self.money = money
        self.limit = limit
        super().__init__(
            week=week,
            reason=(
                f"money would fall to {money}, below the overdraft limit of -{limit}.\n"
                "Remediation tips:\n"
                "  - Release recorded songs to generate streaming revenue\n"
                "  - Reduce roster costs or skip expensive actions this week"
            ),
        )


class ConfigError(LabelSimError):
    """Raised when a balance value needed by a formula is missing or malformed."""

    def __init__(self, *, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Configuration error for '{key}': {reason}")


class InvariantViolation(LabelSimError):
    """Raised when a completed tick fails the post-tick state audit."""

    def __init__(self, *, week: int, violations: List[str]) -> None:
        self.week = week
        self.violations = violations
        message_lines = [f"Invariant audit failed at week {week}:"]
        for violation in violations:
            message_lines.append(f"  - {violation}")
        super().__init__("\n".join(message_lines))


class PersistenceError(LabelSimError):
    """Raised when a persistence backend fails to read or commit data."""

    def __init__(self, *, operation: str, underlying: Optional[Exception] = None) -> None:
        self.operation = operation
        self.underlying = underlying
        detail = f": {underlying}" if underlying else ""
        super().__init__(f"Persistence operation '{operation}' failed{detail}")
