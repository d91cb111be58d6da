"""Tests for the revenue step: releases, streaming, tours and overhead."""

from labelsim.config import BalanceConfig
from labelsim.formulas import initial_streams
from labelsim.revenue import run_revenue_step
from labelsim.rng import stream_rng
from labelsim.schemas import Artist, ChangeType, GameState, Release, Snapshot, Song, Tour


CONFIG = BalanceConfig()


def make_snapshot() -> Snapshot:
    songs = [
        Song(id=f"p1-song-{n}", project_id="p1", artist_id="nova", title=f"Track {n}", quality=70, recorded_week=2)
        for n in (1, 2, 3)
    ]
    return Snapshot(
        game=GameState(money=50000, reputation=20),
        artists=[Artist(id="nova", name="Nova", popularity=30, signed=True, weekly_cost=500)],
        songs=songs,
    )


def test_weekly_burn_covers_overhead_and_retainers():
    snapshot = make_snapshot()
    report = run_revenue_step(snapshot, 1, 99, CONFIG)

    expected = CONFIG.economy.weekly_burn_base + 500
    assert snapshot.game.money == 50000 - expected
    burn = [c for c in report.changes if c.type == ChangeType.EXPENSE]
    assert [c.amount for c in burn] == [-expected]
    assert snapshot.get_artist("nova").recent_revenue == [0]


def test_lead_single_drops_before_main_release():
    snapshot = make_snapshot()
    snapshot.releases.append(
        Release(
            id="r1",
            title="Night Drive",
            artist_id="nova",
            song_ids=["p1-song-1", "p1-song-2", "p1-song-3"],
            release_week=6,
            marketing={"digital": 10000},
            lead_single_song_id="p1-song-1",
            lead_single_week=4,
        )
    )

    run_revenue_step(snapshot, 4, 99, CONFIG)
    release = snapshot.releases[0]
    lead = snapshot.get_song("p1-song-1")
    assert release.status == "lead_single_out"
    assert lead.released and lead.release_week == 4
    assert lead.marketing == {"digital": 3000}
    assert not snapshot.get_song("p1-song-2").released

    run_revenue_step(snapshot, 6, 99, CONFIG)
    assert release.status == "released"
    # The remaining 70% is shared between the two other songs
    assert snapshot.get_song("p1-song-2").marketing == {"digital": 3500}
    assert all(s.released for s in snapshot.songs)
    assert lead.release_week == 4


def test_release_week_streams_are_credited_as_revenue():
    snapshot = make_snapshot()
    snapshot.releases.append(
        Release(id="r1", title="Night Drive", artist_id="nova", song_ids=["p1-song-1"], release_week=3)
    )
    report = run_revenue_step(snapshot, 3, 99, CONFIG)

    song = snapshot.get_song("p1-song-1")
    assert song.initial_streams > 0
    assert song.last_week_streams == song.initial_streams
    assert report.streams >= song.initial_streams
    earned = sum(c.amount for c in report.changes if c.type == ChangeType.ONGOING_REVENUE)
    assert earned == song.last_week_revenue > 0
    assert report.artist_revenue["nova"] == earned


def test_tour_plays_one_city_per_week_and_wraps_up():
    snapshot = make_snapshot()
    snapshot.tours.append(
        Tour(
            id="tour-1",
            artist_id="nova",
            venue_tier="clubs",
            venue_capacity=300,
            cities_planned=2,
            budget=4000,
            start_week=2,
        )
    )
    tour = snapshot.tours[0]

    run_revenue_step(snapshot, 1, 5, CONFIG)
    assert tour.cities_completed == 0

    run_revenue_step(snapshot, 2, 5, CONFIG)
    assert tour.cities_completed == 1 and tour.status == "active"

    report = run_revenue_step(snapshot, 3, 5, CONFIG)
    assert tour.cities_completed == 2 and tour.status == "completed"
    wrap = [c for c in report.changes if c.type == ChangeType.TOUR]
    assert len(wrap) == 1
    gross = sum(r.ticket_revenue + r.merch_revenue for r in tour.results)
    assert wrap[0].metadata["net_revenue"] == gross - 4000

    run_revenue_step(snapshot, 4, 5, CONFIG)
    assert tour.cities_completed == 2


def test_revenue_step_is_deterministic_for_a_seed():
    first, second = make_snapshot(), make_snapshot()
    for snapshot in (first, second):
        snapshot.releases.append(
            Release(id="r1", title="Night Drive", artist_id="nova", song_ids=["p1-song-1"], release_week=1)
        )
        run_revenue_step(snapshot, 1, 1234, CONFIG)
    assert first.model_dump_json() == second.model_dump_json()


def test_lead_single_streams_use_its_own_season():
    snapshot = make_snapshot()
    snapshot.releases.append(
        Release(
            id="r1",
            title="Night Drive",
            artist_id="nova",
            song_ids=["p1-song-1", "p1-song-2"],
            release_week=45,
            marketing={"digital": 10000},
            lead_single_song_id="p1-song-1",
            lead_single_week=38,
        )
    )
    report = run_revenue_step(snapshot, 38, 99, CONFIG)

    lead = snapshot.get_song("p1-song-1")
    expected = initial_streams(
        70, snapshot.game.access.playlist, 20, 3000, 30, CONFIG, stream_rng(99, 38, lead.id), release_week=38
    )
    assert lead.initial_streams == expected
    drop = [c for c in report.changes if c.type == ChangeType.SONG_RELEASE]
    assert drop[0].metadata["season"] == "q3"
