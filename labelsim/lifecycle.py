"""
Project lifecycle state machine.

    planning -> writing -> recording -> recorded -> released

Each project moves at most one stage per week, never backward and never skipping.
Guards:
- planning -> writing: the per-song budget has been set.
- writing -> recording: the writing period for the time investment has elapsed.
- recording -> recorded: every song has been created. Songs are recorded a few per
  week and each gets exactly one quality roll.
- recorded -> released: a release containing the project's songs has come due. The
  player plans that release explicitly; the machine never releases on its own.

Project cost is consumed on entering writing, recording and recorded. A project still
short of 'recorded' past its due week is reported once as a non-fatal anomaly.
"""

from typing import List, Tuple

from .config import BalanceConfig
from .exceptions import InvariantViolation
from .formulas import budget_efficiency_rating, budget_efficiency_ratio, calculate_song_quality
from .rng import quality_rng
from .schemas import (
    ChangeType,
    GameChange,
    NarrativeEvent,
    Project,
    ProjectStage,
    RecordedStage,
    RecordingStage,
    ReleasedStage,
    Snapshot,
    Song,
    WritingStage,
)


def _consume_cost(project: Project, stage: str, snapshot: Snapshot, config: BalanceConfig) -> List[GameChange]:
    fraction = config.projects.stage_cost_fractions.get(stage, 0.0)
    if stage == ProjectStage.RECORDED.value:
        amount = project.total_cost - project.cost_consumed
    else:
        amount = min(round(project.total_cost * fraction), project.total_cost - project.cost_consumed)
    if amount <= 0:
        return []
    project.cost_consumed += amount
    snapshot.game.money -= amount
    return [
        GameChange(
            type=ChangeType.EXPENSE,
            description=f"'{project.title}' {stage} costs",
            amount=-amount,
            artist_id=project.artist_id,
            project_id=project.id,
        )
    ]


def _stage_change(project: Project, description: str) -> GameChange:
    return GameChange(
        type=ChangeType.PROJECT_STAGE,
        description=description,
        artist_id=project.artist_id,
        project_id=project.id,
        metadata={"stage": project.stage.value},
    )


def _record_songs(
    project: Project,
    state: RecordingStage,
    snapshot: Snapshot,
    week: int,
    seed: int,
    config: BalanceConfig,
) -> List[GameChange]:
    artist = snapshot.get_artist(project.artist_id)
    if artist is None:
        raise InvariantViolation(
            week=week, violations=[f"project '{project.id}' references missing artist '{project.artist_id}'"]
        )

    per_week = max(1, config.projects.songs_per_week.get(project.project_type, 1))
    rating = budget_efficiency_rating(
        budget_efficiency_ratio(
            project.budget_per_song or 0,
            project.project_type,
            project.producer_tier,
            project.time_investment,
            project.song_count,
            config,
        ),
        config,
    )
    to_create = min(per_week, project.song_count - state.songs_created)
    changes: List[GameChange] = []
    for offset in range(to_create):
        number = state.songs_created + offset + 1
        song_id = f"{project.id}-song-{number}"
        quality = calculate_song_quality(
            artist,
            project.producer_tier,
            project.time_investment,
            project.budget_per_song or 0,
            project.song_count,
            config,
            quality_rng(seed, week, song_id),
            project_type=project.project_type,
        )
        snapshot.songs.append(
            Song(
                id=song_id,
                project_id=project.id,
                artist_id=project.artist_id,
                title=f"{project.title} #{number}",
                quality=quality,
                recorded_week=week,
            )
        )
        changes.append(
            GameChange(
                type=ChangeType.PROJECT_STAGE,
                description=f"Recorded '{project.title} #{number}' (quality {quality})",
                amount=quality,
                artist_id=project.artist_id,
                project_id=project.id,
                song_id=song_id,
                metadata={"budget_rating": rating},
            )
        )
    state.songs_created += to_create
    return changes


def advance_project(
    project: Project,
    snapshot: Snapshot,
    week: int,
    seed: int,
    config: BalanceConfig,
) -> List[GameChange]:
    """Try one transition for `project`; returns the change records it produced."""
    state = project.stage_state
    changes: List[GameChange] = []

    if state.stage == "planning":
        if state.budget_finalized:
            project.stage_state = WritingStage(started_week=week)
            changes.append(_stage_change(project, f"'{project.title}' moved into writing"))
            changes.extend(_consume_cost(project, "writing", snapshot, config))

    elif state.stage == "writing":
        writing_weeks = config.projects.writing_weeks.get(project.time_investment, 1)
        if week - state.started_week >= writing_weeks:
            project.stage_state = RecordingStage(started_week=week)
            changes.append(_stage_change(project, f"'{project.title}' moved into recording"))
            changes.extend(_consume_cost(project, "recording", snapshot, config))

    elif state.stage == "recording":
        changes.extend(_record_songs(project, state, snapshot, week, seed, config))
        if state.songs_created >= project.song_count:
            project.stage_state = RecordedStage(completed_week=week)
            changes.append(
                GameChange(
                    type=ChangeType.PROJECT_COMPLETE,
                    description=f"'{project.title}' finished recording",
                    artist_id=project.artist_id,
                    project_id=project.id,
                )
            )
            changes.extend(_consume_cost(project, "recorded", snapshot, config))

    elif state.stage == "recorded":
        due = [
            release
            for release in snapshot.releases
            if project.id in release.project_ids and release.release_week <= week
        ]
        if due:
            release = min(due, key=lambda r: (r.release_week, r.id))
            project.stage_state = ReleasedStage(release_id=release.id, released_week=week)
            changes.append(_stage_change(project, f"'{project.title}' released as '{release.title}'"))

    return changes


def check_overdue(project: Project, week: int) -> Tuple[List[GameChange], List[NarrativeEvent]]:
    """Report a project that is past due and still not recorded (once per project)."""
    if project.overdue_reported or week <= project.due_week:
        return [], []
    if project.stage.rank >= ProjectStage.RECORDED.rank:
        return [], []
    project.overdue_reported = True
    description = (
        f"'{project.title}' is stuck in {project.stage.value} "
        f"{week - project.due_week} week(s) past its due week {project.due_week}"
    )
    change = GameChange(
        type=ChangeType.ANOMALY,
        description=description,
        artist_id=project.artist_id,
        project_id=project.id,
    )
    event = NarrativeEvent(
        kind="project_overdue",
        week=week,
        description=description,
        artist_id=project.artist_id,
        project_id=project.id,
    )
    return [change], [event]


def advance_projects(
    snapshot: Snapshot,
    week: int,
    seed: int,
    config: BalanceConfig,
) -> Tuple[List[GameChange], List[NarrativeEvent]]:
    """Advance every non-terminal project by at most one stage."""
    changes: List[GameChange] = []
    events: List[NarrativeEvent] = []
    for project in snapshot.projects:
        if project.stage == ProjectStage.RELEASED:
            continue
        changes.extend(advance_project(project, snapshot, week, seed, config))
        overdue_changes, overdue_events = check_overdue(project, week)
        changes.extend(overdue_changes)
        events.extend(overdue_events)
    return changes, events
