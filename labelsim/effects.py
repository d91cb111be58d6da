"""
Action resolution and the delayed-effects queue.

An action batch is handled in three passes by the orchestrator:

1. validate_actions() collects every problem with the batch. Any problem rejects the
   whole batch before anything is touched.
2. resolve_actions() performs each action's kind-specific work (sign, start project,
   plan release, book tour), then sums all immediate effect maps and applies the
   totals once. Two +2 mood effects on the same artist give +4, not +2.
3. schedule_delayed_effects() parks delayed effect maps in
   GameState.scheduled_effects. fire_due_effects() later applies entries whose
   trigger week has come and deletes them in the same pass.

Effect keys are fixed: money, reputation, creative_capital and the artist_* traits.
"""

import math
from typing import Dict, List, Optional, Set, Tuple

from pydantic import ValidationError as PydanticValidationError

from .access_tiers import tier_index
from .config import BalanceConfig
from .exceptions import InvariantViolation
from .formulas import clamp, release_marketing_cost, season_for_week
from .schemas import (
    Action,
    ActionKind,
    Artist,
    ChangeType,
    GameChange,
    PlanningStage,
    Project,
    ProjectStage,
    Release,
    ScheduledEffect,
    Snapshot,
    Tour,
)

GAME_EFFECT_KEYS = ("money", "reputation", "creative_capital")
ARTIST_EFFECT_KEYS = {
    "artist_mood": "mood",
    "artist_stress": "stress",
    "artist_creativity": "creativity",
    "artist_popularity": "popularity",
    "artist_loyalty": "loyalty",
}
KNOWN_EFFECT_KEYS = set(GAME_EFFECT_KEYS) | set(ARTIST_EFFECT_KEYS)


def delayed_key(action_id: str, choice_id: str) -> str:
    return f"{action_id}-{choice_id}-delayed"


def resolve_targets(snapshot: Snapshot, scope: str, artist_id: Optional[str]) -> List[Artist]:
    """Artists an action's artist_* effects apply to.

    global: every signed artist. predetermined: the most popular signed artist (ties
    broken by id). user_selected: the action's own artist_id.
    """
    signed = snapshot.signed_artists()
    if scope == "global":
        return signed
    if scope == "predetermined":
        ranked = sorted(signed, key=lambda a: (-a.popularity, a.id))
        return ranked[:1]
    artist = snapshot.get_artist(artist_id)
    return [artist] if artist is not None else []


def apply_effect_map(
    snapshot: Snapshot,
    effects: Dict[str, float],
    artists: List[Artist],
    week: int,
) -> None:
    """Apply one effect map. Game keys apply once; artist keys apply to each target."""
    game = snapshot.game
    for key, delta in effects.items():
        if key == "money":
            game.money += round(delta)
        elif key == "reputation":
            game.reputation = clamp(game.reputation + delta, 0, 100)
        elif key == "creative_capital":
            game.creative_capital = max(0, game.creative_capital + round(delta))
        elif key in ARTIST_EFFECT_KEYS:
            trait = ARTIST_EFFECT_KEYS[key]
            for artist in artists:
                setattr(artist, trait, clamp(getattr(artist, trait) + delta, 0, 100))
        else:
            raise InvariantViolation(week=week, violations=[f"unknown effect key '{key}'"])


# ============================================================================
# Validation
# ============================================================================


def _int_param(action: Action, name: str, errors: List[str], *, minimum: int = 0) -> Optional[int]:
    value = action.parameters.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < minimum:
        errors.append(f"{action.action_id}: parameter '{name}' must be a number >= {minimum}")
        return None
    return int(value)


def _number(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def action_cost(action: Action, snapshot: Snapshot, config: BalanceConfig, week: int) -> int:
    """Money an action commits this week (project budgets count in full)."""
    params = action.parameters
    cost = 0
    if action.kind == ActionKind.SIGN_ARTIST:
        cost += _number(params.get("signing_cost", config.economy.default_signing_cost))
    elif action.kind == ActionKind.START_PROJECT:
        limits = config.projects.song_count_limits.get(params.get("project_type", "single"), (1, 1))
        cost += _number(params.get("budget_per_song")) * _number(params.get("song_count", limits[0]))
    elif action.kind == ActionKind.SET_PROJECT_BUDGET:
        project = snapshot.get_project(action.project_id)
        if project is not None:
            cost += _number(params.get("budget_per_song")) * project.song_count
    elif action.kind == ActionKind.PLAN_RELEASE:
        marketing = params.get("marketing") or {}
        if isinstance(marketing, dict):
            release_week = params.get("release_week", week)
            lead_week = params.get("lead_single_week")
            cost += release_marketing_cost(
                sum(_number(v) for v in marketing.values()),
                release_week if isinstance(release_week, int) else week,
                lead_week if isinstance(lead_week, int) else None,
                config,
            )
    elif action.kind == ActionKind.BOOK_TOUR:
        cost += _number(params.get("budget", 0))
    money_effect = action.effects_immediate.get("money", 0)
    if money_effect < 0:
        cost += int(-money_effect)
    return cost


def _check_effects(action: Action, snapshot: Snapshot, pending_artists: Set[str], errors: List[str]) -> None:
    for label, effects in (("immediate", action.effects_immediate), ("delayed", action.effects_delayed)):
        unknown = sorted(set(effects) - KNOWN_EFFECT_KEYS)
        if unknown:
            errors.append(f"{action.action_id}: unknown {label} effect keys {unknown}")

    touches_artists = any(k in ARTIST_EFFECT_KEYS for k in (*action.effects_immediate, *action.effects_delayed))
    if touches_artists and action.target_scope == "user_selected":
        artist = snapshot.get_artist(action.artist_id)
        if action.artist_id is None:
            errors.append(f"{action.action_id}: user_selected scope requires artist_id")
        elif (artist is None or not artist.signed) and action.artist_id not in pending_artists:
            errors.append(f"{action.action_id}: unknown or unsigned artist '{action.artist_id}'")


def _signed_or_pending(snapshot: Snapshot, artist_id: Optional[str], pending: Set[str]) -> bool:
    artist = snapshot.get_artist(artist_id)
    return (artist is not None and artist.signed) or (artist_id in pending)


def _validate_sign(action: Action, snapshot: Snapshot, pending_artists: Set[str], errors: List[str]) -> None:
    payload = action.parameters.get("artist")
    if payload is not None:
        try:
            candidate = Artist.model_validate(payload)
        except PydanticValidationError as exc:
            errors.append(f"{action.action_id}: invalid artist payload ({exc.error_count()} errors)")
            return
        artist_id = candidate.id
    else:
        artist_id = action.artist_id
        if snapshot.get_artist(artist_id) is None:
            errors.append(f"{action.action_id}: unknown artist '{artist_id}'")
            return
    if "signing_cost" in action.parameters:
        _int_param(action, "signing_cost", errors)
    if "weekly_cost" in action.parameters:
        _int_param(action, "weekly_cost", errors)
    existing = snapshot.get_artist(artist_id)
    if (existing is not None and existing.signed) or artist_id in pending_artists:
        errors.append(f"{action.action_id}: artist '{artist_id}' is already signed")
        return
    pending_artists.add(artist_id)


def _validate_start_project(
    action: Action,
    snapshot: Snapshot,
    config: BalanceConfig,
    pending_artists: Set[str],
    pending_projects: Set[str],
    errors: List[str],
) -> None:
    params = action.parameters
    if not _signed_or_pending(snapshot, action.artist_id, pending_artists):
        errors.append(f"{action.action_id}: project needs a signed artist (got '{action.artist_id}')")

    project_type = params.get("project_type", "single")
    limits = config.projects.song_count_limits.get(project_type)
    if limits is None:
        errors.append(f"{action.action_id}: unknown project type '{project_type}'")
    else:
        song_count = _int_param(action, "song_count", errors, minimum=1) if "song_count" in params else limits[0]
        if song_count is not None and not limits[0] <= song_count <= limits[1]:
            errors.append(
                f"{action.action_id}: {project_type} needs {limits[0]}-{limits[1]} songs (got {song_count})"
            )

    producer = params.get("producer_tier", "local")
    if producer not in config.quality.producer_skill or producer not in config.economy.producer_cost_multipliers:
        errors.append(f"{action.action_id}: unknown producer tier '{producer}'")
    time_investment = params.get("time_investment", "standard")
    if time_investment not in config.quality.time_multipliers or time_investment not in config.projects.writing_weeks:
        errors.append(f"{action.action_id}: unknown time investment '{time_investment}'")
    if "budget_per_song" in params:
        _int_param(action, "budget_per_song", errors, minimum=1)

    project_id = action.project_id
    if project_id is not None:
        if snapshot.get_project(project_id) is not None or project_id in pending_projects:
            errors.append(f"{action.action_id}: project id '{project_id}' already exists")
        pending_projects.add(project_id)


def _validate_set_budget(action: Action, snapshot: Snapshot, pending_projects: Set[str], errors: List[str]) -> None:
    project = snapshot.get_project(action.project_id)
    if project is None:
        if action.project_id in pending_projects:
            errors.append(f"{action.action_id}: set the budget in the start_project action instead")
        else:
            errors.append(f"{action.action_id}: unknown project '{action.project_id}'")
        return
    if project.stage != ProjectStage.PLANNING:
        errors.append(f"{action.action_id}: budget is locked once '{project.id}' leaves planning")
    _int_param(action, "budget_per_song", errors, minimum=1)


def _validate_release(
    action: Action,
    snapshot: Snapshot,
    config: BalanceConfig,
    week: int,
    claimed_songs: Set[str],
    errors: List[str],
) -> None:
    params = action.parameters
    song_ids = params.get("song_ids") or []
    if not isinstance(song_ids, list) or not song_ids:
        errors.append(f"{action.action_id}: release needs at least one song id")
        return

    planned = {sid for r in snapshot.releases if r.status != "released" for sid in r.song_ids}
    artists = set()
    for song_id in song_ids:
        song = snapshot.get_song(song_id)
        if song is None:
            errors.append(f"{action.action_id}: unknown song '{song_id}'")
            continue
        project = snapshot.get_project(song.project_id)
        if project is None or project.stage.rank < ProjectStage.RECORDED.rank:
            errors.append(f"{action.action_id}: song '{song_id}' is not from a recorded project")
        if song.released or song_id in planned or song_id in claimed_songs:
            errors.append(f"{action.action_id}: song '{song_id}' is already released or scheduled")
        claimed_songs.add(song_id)
        artists.add(song.artist_id)
    if len(artists) > 1:
        errors.append(f"{action.action_id}: a release must belong to one artist")

    release_id = params.get("release_id") or f"release-{week}-{action.action_id}"
    if snapshot.get_release(release_id) is not None:
        errors.append(f"{action.action_id}: release id '{release_id}' is already taken")

    release_week = params.get("release_week", week)
    if not isinstance(release_week, int) or release_week < week:
        errors.append(f"{action.action_id}: release_week must be week {week} or later")
        release_week = week

    marketing = params.get("marketing") or {}
    if not isinstance(marketing, dict):
        errors.append(f"{action.action_id}: marketing must map channel to spend")
    else:
        for channel, spend in marketing.items():
            if channel not in config.decay.channels:
                errors.append(f"{action.action_id}: unknown marketing channel '{channel}'")
            elif not isinstance(spend, (int, float)) or spend < 0:
                errors.append(f"{action.action_id}: spend on '{channel}' must be >= 0")

    lead_song = params.get("lead_single_song_id")
    lead_week = params.get("lead_single_week")
    if (lead_song is None) != (lead_week is None):
        errors.append(f"{action.action_id}: lead single needs both song id and week")
    elif lead_song is not None:
        if lead_song not in song_ids:
            errors.append(f"{action.action_id}: lead single '{lead_song}' is not part of the release")
        if len(song_ids) < 2:
            errors.append(f"{action.action_id}: a lead single needs at least one other song to precede")
        if not isinstance(lead_week, int) or not week <= lead_week < release_week:
            errors.append(f"{action.action_id}: lead single week must fall between week {week} and the release")


def _validate_tour(
    action: Action,
    snapshot: Snapshot,
    config: BalanceConfig,
    touring: Set[str],
    errors: List[str],
) -> None:
    params = action.parameters
    artist = snapshot.get_artist(action.artist_id)
    if artist is None or not artist.signed:
        errors.append(f"{action.action_id}: tour needs a signed artist (got '{action.artist_id}')")
    elif snapshot.active_tour_for(artist.id) is not None or artist.id in touring:
        errors.append(f"{action.action_id}: '{artist.id}' is already touring")
    if action.artist_id:
        touring.add(action.artist_id)

    venue_tier = params.get("venue_tier")
    capacity_range = config.tour.venue_capacity.get(venue_tier) if isinstance(venue_tier, str) else None
    if capacity_range is None:
        errors.append(f"{action.action_id}: unknown venue tier '{venue_tier}'")
    else:
        unlocked = tier_index("venue", snapshot.game.access.venue, config)
        if tier_index("venue", venue_tier, config) > unlocked or unlocked == 0:
            errors.append(f"{action.action_id}: venue tier '{venue_tier}' is not unlocked")
        capacity = _int_param(action, "venue_capacity", errors, minimum=1)
        if capacity is not None and not capacity_range[0] <= capacity <= capacity_range[1]:
            errors.append(
                f"{action.action_id}: {venue_tier} hold {capacity_range[0]}-{capacity_range[1]} (got {capacity})"
            )
    _int_param(action, "cities", errors, minimum=1)
    _int_param(action, "budget", errors, minimum=0)


def validate_actions(
    snapshot: Snapshot,
    actions: List[Action],
    week: int,
    config: BalanceConfig,
) -> List[str]:
    """Return every problem with the batch (empty list when it is valid).

    Checks run in batch order so that, for example, a project may be started for an
    artist signed earlier in the same batch.
    """
    errors: List[str] = []
    game = snapshot.game

    if len(actions) > game.focus_slots:
        errors.append(f"{len(actions)} actions exceed the {game.focus_slots} available focus slots")

    seen_ids: Set[str] = set()
    pending_artists: Set[str] = set()
    pending_projects: Set[str] = set()
    claimed_songs: Set[str] = set()
    touring: Set[str] = set()
    queued_keys = {effect.key for effect in game.scheduled_effects}

    for action in actions:
        if action.action_id in seen_ids:
            errors.append(f"duplicate action id '{action.action_id}'")
        seen_ids.add(action.action_id)

        if action.kind == ActionKind.SIGN_ARTIST:
            _validate_sign(action, snapshot, pending_artists, errors)
        elif action.kind == ActionKind.START_PROJECT:
            _validate_start_project(action, snapshot, config, pending_artists, pending_projects, errors)
        elif action.kind == ActionKind.SET_PROJECT_BUDGET:
            _validate_set_budget(action, snapshot, pending_projects, errors)
        elif action.kind == ActionKind.PLAN_RELEASE:
            _validate_release(action, snapshot, config, week, claimed_songs, errors)
        elif action.kind == ActionKind.BOOK_TOUR:
            _validate_tour(action, snapshot, config, touring, errors)

        _check_effects(action, snapshot, pending_artists, errors)

        if action.effects_delayed:
            key = delayed_key(action.action_id, action.choice_id)
            if key in queued_keys:
                errors.append(f"{action.action_id}: delayed effect '{key}' is already scheduled")
            queued_keys.add(key)

    # Only spending needs cash on hand; the overdraft absorbs running costs
    required = sum(action_cost(action, snapshot, config, week) for action in actions)
    if required > 0 and required > game.money:
        errors.append(f"insufficient funds: batch needs {required}, have {game.money}")

    capital = sum(action.effects_immediate.get("creative_capital", 0) for action in actions)
    if game.creative_capital + capital < 0:
        errors.append(f"insufficient creative capital: batch needs {-capital}, have {game.creative_capital}")

    return errors


# ============================================================================
# Resolution
# ============================================================================


def _expense(amount: int, description: str, **ids: Optional[str]) -> GameChange:
    return GameChange(type=ChangeType.EXPENSE, description=description, amount=-amount, **ids)


def _sign_artist(action: Action, snapshot: Snapshot, week: int, config: BalanceConfig) -> List[GameChange]:
    payload = action.parameters.get("artist")
    if payload is not None:
        artist = Artist.model_validate(payload)
        existing = snapshot.get_artist(artist.id)
        if existing is not None:
            snapshot.artists.remove(existing)
        snapshot.artists.append(artist)
    else:
        artist = snapshot.get_artist(action.artist_id)
    artist.signed = True
    artist.signed_week = week
    if "weekly_cost" in action.parameters:
        artist.weekly_cost = int(action.parameters["weekly_cost"])

    cost = int(action.parameters.get("signing_cost", config.economy.default_signing_cost))
    snapshot.game.money -= cost
    return [
        GameChange(type=ChangeType.SIGNING, description=f"Signed {artist.name}", artist_id=artist.id),
        _expense(cost, f"Signing advance for {artist.name}", artist_id=artist.id),
    ]


def project_due_week(
    week: int,
    project_type: str,
    song_count: int,
    time_investment: str,
    config: BalanceConfig,
) -> int:
    """Week by which a project started now should have reached 'recorded'."""
    p = config.projects
    per_week = max(1, p.songs_per_week.get(project_type, 1))
    recording_weeks = math.ceil(song_count / per_week)
    return week + 1 + p.writing_weeks.get(time_investment, 1) + recording_weeks + p.due_grace_weeks


def _start_project(action: Action, snapshot: Snapshot, week: int, config: BalanceConfig) -> List[GameChange]:
    params = action.parameters
    project_type = params.get("project_type", "single")
    song_count = int(params.get("song_count", config.projects.song_count_limits[project_type][0]))
    time_investment = params.get("time_investment", "standard")
    budget = params.get("budget_per_song")
    budget = int(budget) if budget is not None else None

    project = Project(
        id=action.project_id or f"project-{week}-{action.action_id}",
        title=params.get("title", f"Untitled {project_type}"),
        artist_id=action.artist_id,
        project_type=project_type,
        producer_tier=params.get("producer_tier", "local"),
        time_investment=time_investment,
        budget_per_song=budget,
        song_count=song_count,
        total_cost=(budget or 0) * song_count,
        created_week=week,
        due_week=project_due_week(week, project_type, song_count, time_investment, config),
        stage_state=PlanningStage(budget_finalized=budget is not None),
    )
    snapshot.projects.append(project)
    return [
        GameChange(
            type=ChangeType.PROJECT_STAGE,
            description=f"Started {project_type} '{project.title}'",
            artist_id=project.artist_id,
            project_id=project.id,
            metadata={"stage": ProjectStage.PLANNING.value},
        )
    ]


def _set_project_budget(action: Action, snapshot: Snapshot) -> List[GameChange]:
    project = snapshot.get_project(action.project_id)
    project.budget_per_song = int(action.parameters["budget_per_song"])
    project.total_cost = project.budget_per_song * project.song_count
    project.stage_state = PlanningStage(budget_finalized=True)
    return [
        GameChange(
            type=ChangeType.PROJECT_STAGE,
            description=f"Budget set for '{project.title}': {project.budget_per_song}/song",
            project_id=project.id,
            amount=project.total_cost,
        )
    ]


def _plan_release(action: Action, snapshot: Snapshot, week: int, config: BalanceConfig) -> List[GameChange]:
    params = action.parameters
    song_ids = list(params["song_ids"])
    songs = [snapshot.get_song(song_id) for song_id in song_ids]
    marketing = {channel: int(spend) for channel, spend in (params.get("marketing") or {}).items()}
    release = Release(
        id=params.get("release_id") or f"release-{week}-{action.action_id}",
        title=params.get("title", songs[0].title),
        artist_id=songs[0].artist_id,
        song_ids=song_ids,
        project_ids=sorted({song.project_id for song in songs}),
        release_week=int(params.get("release_week", week)),
        marketing=marketing,
        lead_single_song_id=params.get("lead_single_song_id"),
        lead_single_week=params.get("lead_single_week"),
    )
    snapshot.releases.append(release)
    changes = [
        GameChange(
            type=ChangeType.RELEASE,
            description=f"Planned release '{release.title}' for week {release.release_week}",
            artist_id=release.artist_id,
            metadata={"release_id": release.id, "songs": len(song_ids)},
        )
    ]
    cost = release_marketing_cost(release.marketing_total, release.release_week, release.lead_single_week, config)
    if cost:
        snapshot.game.money -= cost
        changes.append(
            GameChange(
                type=ChangeType.MARKETING,
                description=f"Marketing campaign for '{release.title}'",
                amount=-cost,
                artist_id=release.artist_id,
                metadata={"channels": marketing, "season": season_for_week(release.release_week, config)},
            )
        )
    return changes


def _book_tour(action: Action, snapshot: Snapshot, week: int) -> List[GameChange]:
    params = action.parameters
    tour = Tour(
        id=params.get("tour_id") or f"tour-{week}-{action.action_id}",
        artist_id=action.artist_id,
        venue_tier=params["venue_tier"],
        venue_capacity=int(params["venue_capacity"]),
        cities_planned=int(params["cities"]),
        budget=int(params.get("budget", 0)),
        start_week=week + 1,
    )
    snapshot.tours.append(tour)
    snapshot.game.money -= tour.budget
    artist = snapshot.get_artist(tour.artist_id)
    return [
        GameChange(
            type=ChangeType.TOUR,
            description=f"Booked a {tour.cities_planned}-city {tour.venue_tier} tour for {artist.name}",
            artist_id=tour.artist_id,
            metadata={"tour_id": tour.id},
        ),
        _expense(tour.budget, f"Tour budget for {artist.name}", artist_id=tour.artist_id),
    ]


def resolve_actions(
    snapshot: Snapshot,
    actions: List[Action],
    week: int,
    config: BalanceConfig,
) -> List[GameChange]:
    """Run kind-specific work for each action, then apply summed immediate effects.

    Assumes validate_actions() returned no errors for this batch.
    """
    changes: List[GameChange] = []
    for action in actions:
        if action.kind == ActionKind.SIGN_ARTIST:
            changes.extend(_sign_artist(action, snapshot, week, config))
        elif action.kind == ActionKind.START_PROJECT:
            changes.extend(_start_project(action, snapshot, week, config))
        elif action.kind == ActionKind.SET_PROJECT_BUDGET:
            changes.extend(_set_project_budget(action, snapshot))
        elif action.kind == ActionKind.PLAN_RELEASE:
            changes.extend(_plan_release(action, snapshot, week, config))
        elif action.kind == ActionKind.BOOK_TOUR:
            changes.extend(_book_tour(action, snapshot, week))
        elif action.kind == ActionKind.ROLE_MEETING:
            changes.append(
                GameChange(
                    type=ChangeType.MEETING,
                    description=f"Meeting '{action.action_id}' choice '{action.choice_id}'",
                    artist_id=action.artist_id,
                    metadata={"effects": dict(action.effects_immediate)},
                )
            )

    game_totals, artist_totals = accumulate_effects(snapshot, actions)
    apply_effect_map(snapshot, game_totals, [], week)
    for artist_id, totals in artist_totals.items():
        apply_effect_map(snapshot, totals, [snapshot.get_artist(artist_id)], week)

    money = round(game_totals.get("money", 0))
    if money:
        change_type = ChangeType.REVENUE if money > 0 else ChangeType.EXPENSE
        changes.append(GameChange(type=change_type, description="Action money effects", amount=money))
    if game_totals.get("reputation"):
        changes.append(
            GameChange(type=ChangeType.REPUTATION, description="Action reputation effects", amount=game_totals["reputation"])
        )
    return changes


def accumulate_effects(
    snapshot: Snapshot,
    actions: List[Action],
) -> Tuple[Dict[str, float], Dict[str, Dict[str, float]]]:
    """Sum immediate effects across a batch.

    Returns:
        (game-level totals, artist_id -> artist-key totals)
    """
    game_totals: Dict[str, float] = {}
    artist_totals: Dict[str, Dict[str, float]] = {}
    for action in actions:
        targets = resolve_targets(snapshot, action.target_scope, action.artist_id)
        for key, delta in action.effects_immediate.items():
            if key in ARTIST_EFFECT_KEYS:
                for artist in targets:
                    bucket = artist_totals.setdefault(artist.id, {})
                    bucket[key] = bucket.get(key, 0) + delta
            else:
                game_totals[key] = game_totals.get(key, 0) + delta
    return game_totals, artist_totals


# ============================================================================
# Delayed effects
# ============================================================================


def schedule_delayed_effects(snapshot: Snapshot, actions: List[Action], week: int) -> List[GameChange]:
    """Park each action's delayed effects at week + effect_offset."""
    changes: List[GameChange] = []
    for action in actions:
        if not action.effects_delayed:
            continue
        if action.target_scope == "global":
            scope, artist_id = "all_signed", None
        else:
            # Predetermined targets are resolved now so later roster changes do not retarget
            targets = resolve_targets(snapshot, action.target_scope, action.artist_id)
            scope, artist_id = "artist", targets[0].id if targets else None
        effect = ScheduledEffect(
            key=delayed_key(action.action_id, action.choice_id),
            trigger_week=week + action.effect_offset,
            effects=dict(action.effects_delayed),
            scope=scope,
            artist_id=artist_id,
            source_action=action.action_id,
            choice_id=action.choice_id,
            created_week=week,
        )
        snapshot.game.scheduled_effects.append(effect)
        changes.append(
            GameChange(
                type=ChangeType.DELAYED_EFFECT,
                description=f"Scheduled '{effect.key}' for week {effect.trigger_week}",
                artist_id=artist_id,
                metadata={"key": effect.key, "trigger_week": effect.trigger_week},
            )
        )
    return changes


def fire_due_effects(snapshot: Snapshot, week: int) -> List[GameChange]:
    """Apply and remove every scheduled effect whose trigger week has come."""
    game = snapshot.game
    due = [effect for effect in game.scheduled_effects if effect.trigger_week <= week]
    if not due:
        return []

    game.scheduled_effects = [effect for effect in game.scheduled_effects if effect.trigger_week > week]
    changes: List[GameChange] = []
    for effect in due:
        if effect.scope == "all_signed":
            targets = snapshot.signed_artists()
        else:
            artist = snapshot.get_artist(effect.artist_id)
            targets = [artist] if artist is not None and artist.signed else []
        apply_effect_map(snapshot, effect.effects, targets, week)
        changes.append(
            GameChange(
                type=ChangeType.DELAYED_EFFECT,
                description=f"Delayed effect '{effect.key}' applied to {len(targets)} artist(s)",
                artist_id=effect.artist_id,
                metadata={"key": effect.key, "effects": dict(effect.effects)},
            )
        )
        money = round(effect.effects.get("money", 0))
        if money:
            changes.append(
                GameChange(
                    type=ChangeType.REVENUE if money > 0 else ChangeType.EXPENSE,
                    description=f"Delayed money effect '{effect.key}'",
                    amount=money,
                )
            )
    return changes
