"""
Weekly and monthly orchestration.

The core contract is two pure functions:

    advance_week(snapshot, actions, config, seed=None) -> (Snapshot, WeekSummary)
    advance_month(snapshot, actions, config, seed=None) -> (Snapshot, MonthSummary)

advance_week runs one week on a deep copy of the snapshot in a fixed order:
0. Increment the week counter; the new value is "this week"
1. Validate the action batch (all-or-nothing)
2. Resolve actions and apply summed immediate effects
3. Schedule delayed effects at this week + offset
4. Fire delayed effects due this week, deleting them
5. Advance project stages (quality rolls happen here)
6. Run the psychology model for every signed artist
7. Run the revenue/decay engine (releases, streams, tours, overhead)
8. Compile the weekly chart from this week's streams
9. Check access tier progression and the focus slot unlock
10. Recompute artist archetypes
11. Audit invariants, assemble the summary and return

Swapping steps changes outcomes, so the order is part of the contract. Any exception
leaves the caller's snapshot untouched because nothing outside the copy is mutated.

The Orchestrator class wraps those functions for stateful runs: it keeps the current
snapshot, asks SimulationRules for each week's actions, commits every week through a
PersistenceStrategy and notifies tick listeners. It is the only place I/O happens.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from .access_tiers import check_focus_slot_unlock, check_tier_progression
from .charts import run_chart_step
from .config import BalanceConfig, Config, load_balance_config
from .effects import fire_due_effects, resolve_actions, schedule_delayed_effects, validate_actions
from .exceptions import (
    InvariantViolation,
    OverdraftError,
    PersistenceError,
    RejectionError,
    ValidationError,
)
from .lifecycle import advance_projects
from .logging_utils import TickStep, log_rejection, log_run, log_step
from .persistence import InMemoryPersistence, PersistenceStrategy
from .psychology import ArtistWorkload, apply_psychology, derive_archetype
from .revenue import run_revenue_step
from .schemas import (
    BOUNDED_TRAITS,
    WEEKS_PER_MONTH,
    Action,
    ChangeType,
    GameChange,
    MonthSummary,
    NarrativeEvent,
    ProjectStage,
    SimulationRun,
    Snapshot,
    WeekSummary,
    month_of_week,
)
from .simulation_rules import SimulationRules, format_snapshot_summary

# Traits reported in WeekSummary.artist_deltas
TRACKED_TRAITS = BOUNDED_TRAITS
REVENUE_TYPES = (ChangeType.REVENUE, ChangeType.ONGOING_REVENUE)
EXPENSE_TYPES = (ChangeType.EXPENSE, ChangeType.MARKETING)

TickListener = Callable[[int, Snapshot, Snapshot, WeekSummary], None]


# ============================================================================
# Pure core
# ============================================================================


def _artist_workloads(snapshot: Snapshot, week: int) -> Dict[str, ArtistWorkload]:
    loads: Dict[str, ArtistWorkload] = {
        artist.id: ArtistWorkload(weekly_revenue=(artist.recent_revenue or [0])[-1])
        for artist in snapshot.signed_artists()
    }
    for project in snapshot.projects:
        load = loads.get(project.artist_id)
        if load is None:
            continue
        if project.stage.rank < ProjectStage.RECORDED.rank:
            load.active_projects += 1
        if project.stage == ProjectStage.RECORDING:
            load.recording_projects += 1
    for release in snapshot.releases:
        load = loads.get(release.artist_id)
        if load is None or release.status == "released":
            continue
        if release.release_week == week or release.lead_single_week == week:
            load.releases += 1
    return loads


def _run_psychology(
    snapshot: Snapshot, week: int, config: BalanceConfig
) -> Tuple[List[GameChange], List[NarrativeEvent]]:
    changes: List[GameChange] = []
    events: List[NarrativeEvent] = []
    loads = _artist_workloads(snapshot, week)
    for artist in snapshot.signed_artists():
        result = apply_psychology(artist, loads[artist.id], week, config)
        events.extend(result.events)
        for event in result.events:
            changes.append(
                GameChange(type=ChangeType.EVENT, description=event.description, artist_id=artist.id)
            )
        if result.cost:
            snapshot.game.money -= result.cost
            changes.append(
                GameChange(
                    type=ChangeType.EXPENSE,
                    description=f"Support costs for {artist.name}",
                    amount=-result.cost,
                    artist_id=artist.id,
                )
            )
    return changes, events


def _ledger(changes: List[GameChange]) -> Tuple[int, int]:
    revenue = sum(round(c.amount) for c in changes if c.type in REVENUE_TYPES and c.amount and c.amount > 0)
    expenses = -sum(round(c.amount) for c in changes if c.type in EXPENSE_TYPES and c.amount and c.amount < 0)
    return revenue, expenses


def audit_invariants(before: Snapshot, after: Snapshot, week: int, changes: List[GameChange]) -> None:
    """Check the completed week against the data-model invariants.

    Raises:
        InvariantViolation: Listing every broken invariant.
    """
    violations: List[str] = []
    game = after.game

    if not 0 <= game.reputation <= 100:
        violations.append(f"reputation {game.reputation} outside [0, 100]")

    for artist in after.artists:
        for trait in (*BOUNDED_TRAITS, "talent", "work_ethic", "mass_appeal"):
            value = getattr(artist, trait)
            if not 0 <= value <= 100:
                violations.append(f"artist '{artist.id}' {trait}={value} outside [0, 100]")

    previous_quality = {song.id: song.quality for song in before.songs}
    for song in after.songs:
        if not 20 <= song.quality <= 98:
            violations.append(f"song '{song.id}' quality {song.quality} outside [20, 98]")
        if song.id in previous_quality and previous_quality[song.id] != song.quality:
            violations.append(f"song '{song.id}' quality changed after recording")

    previous_stage = {project.id: project.stage.rank for project in before.projects}
    for project in after.projects:
        old = previous_stage.get(project.id)
        if old is not None and not old <= project.stage.rank <= old + 1:
            violations.append(f"project '{project.id}' jumped from stage {old} to {project.stage.rank}")

    keys = [effect.key for effect in game.scheduled_effects]
    if len(keys) != len(set(keys)):
        violations.append("duplicate scheduled effect keys")
    for effect in game.scheduled_effects:
        if effect.trigger_week <= week:
            violations.append(f"scheduled effect '{effect.key}' (week {effect.trigger_week}) was not fired")

    for key, unlocked in before.game.tier_unlock_history.items():
        if game.tier_unlock_history.get(key) != unlocked:
            violations.append(f"tier unlock history for '{key}' was rewritten")

    revenue, expenses = _ledger(changes)
    if game.money - before.game.money != revenue - expenses:
        violations.append(
            f"money moved by {game.money - before.game.money} but ledger shows {revenue - expenses}"
        )

    if violations:
        raise InvariantViolation(week=week, violations=violations)


def _artist_deltas(before: Snapshot, after: Snapshot) -> Dict[str, Dict[str, float]]:
    deltas: Dict[str, Dict[str, float]] = {}
    for artist in after.artists:
        previous = before.get_artist(artist.id)
        if previous is None:
            continue
        traits = {
            trait: round(getattr(artist, trait) - getattr(previous, trait), 2)
            for trait in TRACKED_TRAITS
            if round(getattr(artist, trait) - getattr(previous, trait), 2) != 0
        }
        if traits:
            deltas[artist.id] = traits
    return deltas


def advance_week(
    snapshot: Snapshot,
    actions: List[Action],
    config: BalanceConfig,
    seed: Optional[int] = None,
    simulation_rules: Optional[SimulationRules] = None,
) -> Tuple[Snapshot, WeekSummary]:
    """Advance the game by one week.

    Args:
        snapshot: State at the end of the previous week. Never mutated.
        actions: Player actions for this week (at most game.focus_slots).
        config: Balance bundle.
        seed: Overrides game.rng_seed for this week's draws.
        simulation_rules: Optional extra action validation.

    Returns:
        (new snapshot, summary of the week)

    Raises:
        ValidationError: The batch is invalid; nothing was applied.
        OverdraftError: Costs would push money past the overdraft limit.
        ConfigError: A balance value needed by a formula is missing.
        InvariantViolation: The computed week failed the state audit.
    """
    state = snapshot.model_copy(deep=True)
    game = state.game
    game.week += 1
    week = game.week
    seed = game.rng_seed if seed is None else seed

    changes: List[GameChange] = []
    events: List[NarrativeEvent] = []

    # 1. Validate the whole batch before touching anything
    errors = validate_actions(state, actions, week, config)
    if simulation_rules:
        for action in actions:
            problem = simulation_rules.validate_action(action, state)
            if problem:
                errors.append(f"{action.action_id}: {problem}")
    if errors:
        raise ValidationError(week=week, errors=errors)
    game.focus_slots_used = len(actions)

    # 2. Immediate effects
    changes.extend(resolve_actions(state, actions, week, config))

    # 3. Delayed effects go into the registry
    changes.extend(schedule_delayed_effects(state, actions, week))

    # 4. Fire what is due this week
    changes.extend(fire_due_effects(state, week))

    # 5. Project lifecycle
    project_changes, project_events = advance_projects(state, week, seed, config)
    changes.extend(project_changes)
    events.extend(project_events)

    # 6. Psychology
    psych_changes, psych_events = _run_psychology(state, week, config)
    changes.extend(psych_changes)
    events.extend(psych_events)

    # 7. Revenue and decay
    report = run_revenue_step(state, week, seed, config)
    changes.extend(report.changes)
    if game.money < -config.economy.overdraft_limit:
        raise OverdraftError(week=week, money=game.money, limit=config.economy.overdraft_limit)

    # 8. Chart
    chart = run_chart_step(state, week, seed, config)
    changes.extend(chart.changes)

    # 9. Access tiers
    changes.extend(check_tier_progression(game, config))
    slot_change = check_focus_slot_unlock(game, config)
    if slot_change:
        changes.append(slot_change)

    # 10. Archetypes
    for artist in state.artists:
        artist.archetype = derive_archetype(artist, config)

    # 11. Audit and summarize
    audit_invariants(snapshot, state, week, changes)
    revenue, expenses = _ledger(changes)
    summary = WeekSummary(
        week=week,
        month=month_of_week(week),
        starting_money=snapshot.game.money,
        ending_money=game.money,
        money_delta=game.money - snapshot.game.money,
        reputation_delta=round(game.reputation - snapshot.game.reputation, 2),
        revenue=revenue,
        expenses=expenses,
        streams=report.streams,
        changes=changes,
        artist_deltas=_artist_deltas(snapshot, state),
        events=events,
        chart=chart.entries,
    )
    return state, summary


def aggregate_month(weeks: List[WeekSummary]) -> MonthSummary:
    """Fold four weekly summaries into one MonthSummary."""
    artist_deltas: Dict[str, Dict[str, float]] = {}
    for summary in weeks:
        for artist_id, traits in summary.artist_deltas.items():
            bucket = artist_deltas.setdefault(artist_id, {})
            for trait, delta in traits.items():
                bucket[trait] = round(bucket.get(trait, 0) + delta, 2)
    return MonthSummary(
        month=weeks[0].month,
        weeks=weeks,
        starting_money=weeks[0].starting_money,
        ending_money=weeks[-1].ending_money,
        money_delta=sum(w.money_delta for w in weeks),
        reputation_delta=round(sum(w.reputation_delta for w in weeks), 2),
        revenue=sum(w.revenue for w in weeks),
        expenses=sum(w.expenses for w in weeks),
        streams=sum(w.streams for w in weeks),
        changes=[change for w in weeks for change in w.changes],
        artist_deltas=artist_deltas,
        events=[event for w in weeks for event in w.events],
    )


def advance_month(
    snapshot: Snapshot,
    actions: List[Action],
    config: BalanceConfig,
    seed: Optional[int] = None,
    simulation_rules: Optional[SimulationRules] = None,
) -> Tuple[Snapshot, MonthSummary]:
    """Advance four weeks. Actions apply to the first week; failure rejects the month."""
    current = snapshot
    weeks: List[WeekSummary] = []
    for index in range(WEEKS_PER_MONTH):
        current, summary = advance_week(
            current, actions if index == 0 else [], config, seed, simulation_rules
        )
        weeks.append(summary)
    return current, aggregate_month(weeks)


# ============================================================================
# Stateful runner
# ============================================================================


class Orchestrator:
    """
    Stateful simulation runner.

    Holds the current snapshot and injected collaborators. All I/O (persistence)
    happens here, after a week has been fully computed.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        config: Optional[BalanceConfig] = None,
        simulation_rules: Optional[SimulationRules] = None,
        persistence: Optional[PersistenceStrategy] = None,
        tick_listeners: Optional[List[TickListener]] = None,
        verbose: Optional[bool] = None,
    ):
        """Initialize orchestrator with all dependencies injected.

        Args:
            snapshot: Starting snapshot
            config: Balance bundle (defaults to load_balance_config())
            simulation_rules: Optional rules supplying actions and extra validation
            persistence: Optional persistence strategy (defaults to InMemory)
            tick_listeners: Optional callables invoked after each committed week with
                (week, previous_snapshot, new_snapshot, summary)
            verbose: Print one tagged line per step (defaults to Config.VERBOSE)
        """
        self.config = config or load_balance_config()
        self.simulation_rules = simulation_rules
        self.persistence = persistence or InMemoryPersistence()
        self.tick_listeners = tick_listeners or []
        self.verbose = Config.VERBOSE if verbose is None else verbose
        self.run_id: UUID = uuid4()

        self.current_snapshot = snapshot
        if self.simulation_rules:
            self.current_snapshot = self.simulation_rules.on_simulation_start(snapshot)

    def _format_snapshot(self, snapshot: Snapshot) -> str:
        if self.simulation_rules:
            return self.simulation_rules.format_snapshot_summary(snapshot)
        return format_snapshot_summary(snapshot)

    def _report(self, summary: WeekSummary) -> None:
        if not self.verbose:
            return
        week = summary.week
        changes = summary.changes

        def count(change_type: ChangeType) -> int:
            return sum(1 for c in changes if c.type == change_type)

        log_step(week, TickStep.ACTIONS, f"{len(changes)} changes recorded")
        if count(ChangeType.DELAYED_EFFECT):
            log_step(week, TickStep.DELAYED, f"{count(ChangeType.DELAYED_EFFECT)} delayed effect(s) fired")
        recorded = sum(1 for c in changes if c.song_id and c.type == ChangeType.PROJECT_STAGE)
        if recorded:
            log_step(week, TickStep.PROJECTS, f"{recorded} song(s) recorded")
        for event in summary.events:
            log_step(week, TickStep.PSYCHOLOGY, event.description)
        released = count(ChangeType.SONG_RELEASE)
        if summary.streams or released:
            log_step(week, TickStep.REVENUE, f"{summary.streams:,} streams, {released} song(s) released")
        for change in changes:
            if change.type == ChangeType.CHART_DEBUT:
                log_step(week, TickStep.CHART, change.description)
        for change in changes:
            if change.type == ChangeType.UNLOCK:
                log_step(week, TickStep.TIERS, change.description)
        log_step(
            week,
            TickStep.SUMMARY,
            f"money {summary.starting_money} -> {summary.ending_money} "
            f"({self._format_snapshot(self.current_snapshot)})",
        )

    def _advance(self, actions: List[Action]) -> Tuple[Snapshot, WeekSummary]:
        try:
            return advance_week(
                self.current_snapshot, actions, self.config, simulation_rules=self.simulation_rules
            )
        except RejectionError as exc:
            if self.verbose:
                log_rejection(str(exc))
            raise

    def _accept(self, previous: Snapshot, new: Snapshot, summary: WeekSummary) -> None:
        self.current_snapshot = new
        self._report(summary)
        for listener in self.tick_listeners:
            try:
                listener(summary.week, previous, new, summary)
            except Exception as exc:  # pragma: no cover - diagnostic hook
                log_rejection(f"Tick listener failed: {exc}")

    def step(self, actions: Optional[List[Action]] = None) -> WeekSummary:
        """Advance one week in memory (no persistence)."""
        previous = self.current_snapshot
        new, summary = self._advance(actions or [])
        self._accept(previous, new, summary)
        return summary

    def step_month(self, actions: Optional[List[Action]] = None) -> MonthSummary:
        """Advance four weeks atomically (no persistence)."""
        previous = self.current_snapshot
        new, summary = advance_month(
            previous, actions or [], self.config, simulation_rules=self.simulation_rules
        )
        self.current_snapshot = new
        for week_summary in summary.weeks:
            self._report(week_summary)
        for listener in self.tick_listeners:
            try:
                listener(summary.weeks[-1].week, previous, new, summary.weeks[-1])
            except Exception as exc:  # pragma: no cover - diagnostic hook
                log_rejection(f"Tick listener failed: {exc}")
        return summary

    async def commit(self, snapshot: Snapshot, summary: WeekSummary) -> None:
        """Persist one computed week.

        Raises:
            PersistenceError: The backend failed; the week is computed but not durable.
        """
        await self.persistence.save_snapshot(self.run_id, summary.week, snapshot)
        await self.persistence.save_summary(self.run_id, summary)

    async def run(self, num_weeks: int) -> Dict:
        """Run the simulation for N weeks, committing each week.

        Actions come from simulation_rules.plan_actions(); without rules every week
        runs with no actions.

        Returns:
            Dict with run_id, final_snapshot and the list of weekly summaries
        """
        await self.persistence.initialize()
        run = SimulationRun(
            id=self.run_id,
            start_time=datetime.now(timezone.utc),
            num_weeks=num_weeks,
            seed=self.current_snapshot.game.rng_seed,
            status="running",
            config=self.config.model_dump(mode="json"),
        )
        summaries: List[WeekSummary] = []
        try:
            await self.persistence.save_run_metadata(run)
            await self.persistence.save_snapshot(
                self.run_id, self.current_snapshot.game.week, self.current_snapshot
            )
            if self.verbose:
                log_run(f"Starting simulation run {self.run_id}")
                log_run(f"Artists: {len(self.current_snapshot.signed_artists())}, Weeks: {num_weeks}\n")

            for _ in range(num_weeks):
                week = self.current_snapshot.game.week + 1
                if self.verbose:
                    print(f"=== Week {week} ===")
                actions: List[Action] = []
                if self.simulation_rules:
                    actions = self.simulation_rules.plan_actions(self.current_snapshot, week)

                previous = self.current_snapshot
                new, summary = self._advance(actions)
                await self.commit(new, summary)
                self._accept(previous, new, summary)
                summaries.append(summary)

                if self.simulation_rules:
                    self.simulation_rules.on_week_end(new, summary)
                    if self.simulation_rules.should_stop(new, week):
                        if self.verbose:
                            print(f"\nSimulation stopped early at week {week} (signaled by simulation rules).")
                        break

            if self.simulation_rules:
                self.current_snapshot = self.simulation_rules.on_simulation_end(
                    self.current_snapshot, self.current_snapshot.game.week
                )
            await self.persistence.update_run_status(
                self.run_id, "completed", datetime.now(timezone.utc)
            )
            return {
                "run_id": self.run_id,
                "final_snapshot": self.current_snapshot,
                "summaries": summaries,
            }
        except PersistenceError:
            raise
        except Exception:
            await self.persistence.update_run_status(self.run_id, "failed", datetime.now(timezone.utc))
            raise
        finally:
            await self.persistence.close()
