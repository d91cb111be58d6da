"""
SimulationRules interface for driving a labelsim run.

The weekly tick itself is fixed (see orchestrator.advance_week). What varies between
runs is who decides the actions and when a run should end. Users subclass
SimulationRules to plug in a scripted player, a heuristic label manager or a replay
of recorded actions, and inject it into the Orchestrator.

Key responsibilities:
- Plan the action batch for each week (plan_actions)
- Reject actions the scenario forbids on top of the built-in validation
- Lifecycle hooks around the run
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .schemas import Action, Snapshot, WeekSummary


def format_snapshot_summary(snapshot: Snapshot) -> str:
    """Format the headline numbers of a snapshot for orchestrator output.

    Example output:
    "Money=12,400, Reputation=23.5, Artists=2, Releases=1"
    """
    game = snapshot.game
    reputation = f"{game.reputation:.1f}" if game.reputation >= 10 else f"{game.reputation:.2f}"
    released = sum(1 for r in snapshot.releases if r.status == "released")
    parts = [
        f"Money={game.money:,}",
        f"Reputation={reputation}",
        f"Artists={len(snapshot.signed_artists())}",
        f"Releases={released}",
    ]
    return ", ".join(parts)


class SimulationRules(ABC):
    """Abstract base class for the decision side of a simulation.

    The Orchestrator calls plan_actions() once per week with the snapshot at the end
    of the previous week. Everything the rules return goes through the same validation
    as hand-built batches, so a buggy policy surfaces as a ValidationError rather than
    corrupt state.

    Implementations must be deterministic for a given snapshot when reproducible runs
    are wanted; seed any randomness with labelsim.rng.stable_int_seed(snapshot.game.rng_seed, week, ...).
    """

    @abstractmethod
    def plan_actions(self, snapshot: Snapshot, week: int) -> List[Action]:
        """
        Choose the action batch for `week`.

        Args:
            snapshot: State at the end of week - 1
            week: The week about to be processed

        Returns:
            At most snapshot.game.focus_slots actions
        """
        pass

    def validate_action(self, action: Action, snapshot: Snapshot) -> Optional[str]:
        """
        Extra scenario-specific check for one action.

        Returns:
            None when the action is allowed, otherwise a short reason
        """
        return None

    def on_simulation_start(self, snapshot: Snapshot) -> Snapshot:
        """Hook called once before the first week. Returns the snapshot to start from."""
        return snapshot

    def on_week_end(self, snapshot: Snapshot, summary: WeekSummary) -> None:
        """Hook called after each committed week."""
        return None

    def should_stop(self, snapshot: Snapshot, week: int) -> bool:
        """Return True to end the run after `week`."""
        return False

    def on_simulation_end(self, snapshot: Snapshot, week: int) -> Snapshot:
        """Hook called once after the final week."""
        return snapshot

    def format_snapshot_summary(self, snapshot: Snapshot) -> str:
        """Printable summary for orchestrator output. Override for custom metrics."""
        return format_snapshot_summary(snapshot)
