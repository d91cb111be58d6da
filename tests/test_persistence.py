"""Tests for the in-memory and JSON persistence backends."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from labelsim.exceptions import PersistenceError
from labelsim.persistence import InMemoryPersistence, JsonPersistence
from labelsim.schemas import Artist, GameState, ScheduledEffect, SimulationRun, Snapshot, WeekSummary


def make_snapshot(week: int = 0) -> Snapshot:
    return Snapshot(
        game=GameState(
            week=week,
            money=50000,
            scheduled_effects=[
                ScheduledEffect(
                    key="m1-default-delayed",
                    trigger_week=week + 2,
                    effects={"artist_mood": 3},
                    source_action="m1",
                    choice_id="default",
                    created_week=week,
                )
            ],
        ),
        artists=[Artist(id="nova", name="Nova", signed=True)],
    )


def make_summary(week: int) -> WeekSummary:
    return WeekSummary(week=week, month=1, starting_money=50000, ending_money=47000, money_delta=-3000, expenses=3000)


def make_run(run_id) -> SimulationRun:
    return SimulationRun(
        id=run_id,
        start_time=datetime(2030, 1, 1, tzinfo=timezone.utc),
        num_weeks=4,
        seed=42,
        status="running",
    )


@pytest.mark.asyncio
async def test_in_memory_persistence_round_trip():
    persistence = InMemoryPersistence()
    await persistence.initialize()
    run_id = uuid4()

    await persistence.save_run_metadata(make_run(run_id))
    snapshot = make_snapshot(week=1)
    await persistence.save_snapshot(run_id, 1, snapshot)
    await persistence.save_summary(run_id, make_summary(1))

    # Stored copies are isolated from later caller mutation
    snapshot.game.money = 0
    stored = await persistence.get_snapshot(run_id, 1)
    assert stored.game.money == 50000
    assert stored.game.scheduled_effects[0].key == "m1-default-delayed"
    assert (await persistence.get_summary(run_id, 1)).money_delta == -3000
    assert await persistence.latest_week(run_id) == 1

    await persistence.update_run_status(run_id, "completed", datetime(2030, 1, 2, tzinfo=timezone.utc))
    run = await persistence.get_run(run_id)
    assert run.status == "completed" and run.end_time is not None

    await persistence.delete_run(run_id)
    assert await persistence.get_snapshot(run_id, 1) is None
    assert await persistence.latest_week(run_id) is None
    await persistence.close()


@pytest.mark.asyncio
async def test_json_persistence_round_trip(tmp_path):
    persistence = JsonPersistence(tmp_path / "runs")
    await persistence.initialize()
    run_id = uuid4()

    await persistence.save_run_metadata(make_run(run_id))
    for week in (0, 1, 2):
        await persistence.save_snapshot(run_id, week, make_snapshot(week))
    await persistence.save_summary(run_id, make_summary(2))

    run_dir = tmp_path / "runs" / str(run_id)
    assert (run_dir / "run.json").exists()
    assert (run_dir / "snapshots" / "00002.json").exists()
    assert (run_dir / "summaries" / "00002.json").exists()

    assert await persistence.get_snapshot(run_id, 2) == make_snapshot(2)
    assert await persistence.get_snapshot(run_id, 9) is None
    assert (await persistence.get_summary(run_id, 2)).expenses == 3000
    assert await persistence.latest_week(run_id) == 2

    await persistence.update_run_status(run_id, "failed")
    assert (await persistence.get_run(run_id)).status == "failed"

    await persistence.delete_run(run_id)
    assert not run_dir.exists()


@pytest.mark.asyncio
async def test_json_persistence_reports_corrupt_files(tmp_path):
    persistence = JsonPersistence(tmp_path)
    await persistence.initialize()
    run_id = uuid4()
    path = tmp_path / str(run_id) / "snapshots" / "00001.json"
    path.parent.mkdir(parents=True)
    path.write_text("{not json", "utf-8")

    with pytest.raises(PersistenceError) as excinfo:
        await persistence.get_snapshot(run_id, 1)
    assert excinfo.value.operation == "get_snapshot"


@pytest.mark.asyncio
async def test_json_persistence_reports_write_failures(tmp_path):
    blocker = tmp_path / "blocked"
    blocker.write_text("a file where a directory should be", "utf-8")
    persistence = JsonPersistence(blocker)

    with pytest.raises(PersistenceError):
        await persistence.save_snapshot(uuid4(), 1, make_snapshot())
