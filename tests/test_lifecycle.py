"""Tests for the project stage machine."""

from labelsim.config import BalanceConfig
from labelsim.formulas import minimum_viable_cost
from labelsim.lifecycle import advance_project, advance_projects
from labelsim.schemas import (
    Artist,
    ChangeType,
    GameState,
    PlanningStage,
    Project,
    ProjectStage,
    RecordedStage,
    RecordingStage,
    Release,
    Snapshot,
)


CONFIG = BalanceConfig()


def make_project(**overrides) -> Project:
    fields = dict(
        id="p1",
        title="Night Drive",
        artist_id="nova",
        project_type="ep",
        producer_tier="regional",
        time_investment="standard",
        budget_per_song=4000,
        song_count=5,
        total_cost=20000,
        created_week=0,
        due_week=20,
        stage_state=PlanningStage(budget_finalized=True),
    )
    fields.update(overrides)
    return Project(**fields)


def make_snapshot(project: Project, money: int = 100000) -> Snapshot:
    return Snapshot(
        game=GameState(money=money),
        artists=[Artist(id="nova", name="Nova", talent=60, signed=True)],
        projects=[project],
    )


def test_planning_waits_for_budget():
    project = make_project(budget_per_song=None, total_cost=0, stage_state=PlanningStage())
    snapshot = make_snapshot(project)
    assert advance_project(project, snapshot, 1, 42, CONFIG) == []
    assert project.stage == ProjectStage.PLANNING


def test_five_song_ep_is_recorded_only_when_all_songs_exist():
    project = make_project(stage_state=RecordingStage(started_week=0))
    snapshot = make_snapshot(project)

    advance_project(project, snapshot, 1, 42, CONFIG)
    assert project.stage == ProjectStage.RECORDING
    assert project.stage_state.songs_created == 3
    assert len(snapshot.songs) == 3

    changes = advance_project(project, snapshot, 2, 42, CONFIG)
    assert project.stage == ProjectStage.RECORDED
    assert len(snapshot.songs) == 5
    assert [s.id for s in snapshot.songs] == [f"p1-song-{n}" for n in range(1, 6)]
    assert all(20 <= s.quality <= 98 for s in snapshot.songs)
    assert any(c.type == ChangeType.PROJECT_COMPLETE for c in changes)


def test_stages_advance_one_step_per_week_and_consume_cost():
    project = make_project()
    snapshot = make_snapshot(project)
    seen = [project.stage]
    for week in range(1, 8):
        advance_projects(snapshot, week, 42, CONFIG)
        seen.append(project.stage)

    ranks = [stage.rank for stage in seen]
    assert all(0 <= later - earlier <= 1 for earlier, later in zip(ranks, ranks[1:]))
    assert project.stage == ProjectStage.RECORDED
    assert project.cost_consumed == project.total_cost
    assert snapshot.game.money == 100000 - project.total_cost


def test_recorded_project_is_never_released_without_a_release():
    project = make_project(stage_state=RecordedStage(completed_week=1))
    snapshot = make_snapshot(project)
    for week in range(2, 10):
        advance_projects(snapshot, week, 42, CONFIG)
    assert project.stage == ProjectStage.RECORDED


def test_recorded_project_moves_to_released_when_release_is_due():
    project = make_project(stage_state=RecordedStage(completed_week=1))
    snapshot = make_snapshot(project)
    snapshot.releases.append(
        Release(id="r1", title="Night Drive", artist_id="nova", song_ids=[], project_ids=["p1"], release_week=4)
    )
    advance_projects(snapshot, 3, 42, CONFIG)
    assert project.stage == ProjectStage.RECORDED
    advance_projects(snapshot, 4, 42, CONFIG)
    assert project.stage == ProjectStage.RELEASED
    assert project.stage_state.release_id == "r1"


def test_overdue_project_is_reported_once():
    project = make_project(budget_per_song=None, total_cost=0, stage_state=PlanningStage(), due_week=3)
    snapshot = make_snapshot(project)

    _, events = advance_projects(snapshot, 3, 42, CONFIG)
    assert events == []
    changes, events = advance_projects(snapshot, 4, 42, CONFIG)
    assert [e.kind for e in events] == ["project_overdue"]
    assert any(c.type == ChangeType.ANOMALY for c in changes)

    _, events = advance_projects(snapshot, 5, 42, CONFIG)
    assert events == []


def test_song_quality_is_seed_deterministic():
    first = make_project(stage_state=RecordingStage(started_week=0))
    second = make_project(stage_state=RecordingStage(started_week=0))
    a, b = make_snapshot(first), make_snapshot(second)
    advance_project(first, a, 1, 9, CONFIG)
    advance_project(second, b, 1, 9, CONFIG)
    assert [s.quality for s in a.songs] == [s.quality for s in b.songs]


def test_recorded_songs_carry_the_budget_rating():
    cheap = make_project(stage_state=RecordingStage(started_week=0))
    changes = advance_project(cheap, make_snapshot(cheap), 1, 42, CONFIG)
    recorded = [c for c in changes if c.song_id]
    assert recorded and all(c.metadata["budget_rating"] == "Insufficient" for c in recorded)

    viable = minimum_viable_cost("ep", "regional", "standard", 5, CONFIG)
    funded = make_project(budget_per_song=viable, stage_state=RecordingStage(started_week=0))
    changes = advance_project(funded, make_snapshot(funded), 1, 42, CONFIG)
    assert {c.metadata["budget_rating"] for c in changes if c.song_id} == {"Efficient"}
