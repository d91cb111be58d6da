"""Tests for the weekly chart step."""

from labelsim.charts import competitor_field, rank_entries, run_chart_step
from labelsim.config import BalanceConfig, ChartConfig
from labelsim.rng import chart_rng
from labelsim.schemas import Artist, ChangeType, GameState, Snapshot, Song


CONFIG = BalanceConfig()


def make_song(song_id: str, streams: int, released: bool = True, **fields) -> Song:
    return Song(
        id=song_id,
        project_id="p1",
        artist_id="nova",
        title=song_id.title(),
        quality=70,
        recorded_week=1,
        released=released,
        release_week=2 if released else None,
        last_week_streams=streams,
        **fields,
    )


def make_snapshot(*songs: Song) -> Snapshot:
    return Snapshot(
        game=GameState(money=50000),
        artists=[Artist(id="nova", name="Nova", signed=True)],
        songs=list(songs),
    )


def test_competitor_field_is_seeded_and_bounded():
    first = competitor_field(chart_rng(7, 3), CONFIG)
    assert first == competitor_field(chart_rng(7, 3), CONFIG)
    assert first != competitor_field(chart_rng(7, 4), CONFIG)
    assert len(first) == CONFIG.charts.competitor_count
    assert 950000 * 0.8 <= first[0][2] <= 950000 * 1.2
    assert 50000 * 0.8 <= first[-1][2] <= 50000 * 1.2


def test_ties_break_on_entry_id():
    assert rank_entries([("b", 10), ("c", 30), ("a", 10)]) == [("c", 30), ("a", 10), ("b", 10)]


def test_hit_debuts_at_number_one_then_holds():
    snapshot = make_snapshot(make_song("smash", 2_000_000))
    report = run_chart_step(snapshot, 3, 7, CONFIG)

    song = snapshot.get_song("smash")
    assert song.chart_position == 1 and song.peak_position == 1 and song.weeks_on_chart == 1
    assert report.entries[0].song_id == "smash" and report.entries[0].is_debut
    debuts = [c for c in report.changes if c.type == ChangeType.CHART_DEBUT]
    assert len(debuts) == 1 and debuts[0].metadata["position"] == 1
    assert [e.position for e in report.entries] == list(range(1, len(report.entries) + 1))

    report = run_chart_step(snapshot, 4, 7, CONFIG)
    assert song.weeks_on_chart == 2
    assert not report.entries[0].is_debut
    assert not [c for c in report.changes if c.type == ChangeType.CHART_DEBUT]


def test_chart_is_capped_at_max_position():
    snapshot = make_snapshot(*(make_song(f"song-{n}", 30000 + n) for n in range(5)))
    report = run_chart_step(snapshot, 3, 7, CONFIG)
    assert len(report.entries) == CONFIG.charts.max_chart_position
    charted = [s for s in snapshot.songs if s.chart_position is not None]
    # 98 competitors leave room for two of the five songs
    assert [s.id for s in charted] == ["song-3", "song-4"]
    assert snapshot.get_song("song-0").weeks_on_chart == 0


def test_silent_and_unreleased_songs_stay_off():
    snapshot = make_snapshot(
        make_song("quiet", 0, chart_position=40, peak_position=40, weeks_on_chart=3),
        make_song("demo", 5_000_000, released=False),
    )
    report = run_chart_step(snapshot, 3, 7, CONFIG)
    assert snapshot.get_song("quiet").chart_position is None
    assert snapshot.get_song("quiet").peak_position == 40
    assert snapshot.get_song("demo").chart_position is None
    assert all(entry.song_id is None for entry in report.entries)


def test_exit_rules_drop_trickling_and_long_running_songs():
    snapshot = make_snapshot(
        make_song("trickle", 500),
        make_song("veteran", 20000, chart_position=95, peak_position=12, weeks_on_chart=31),
    )
    report = run_chart_step(snapshot, 3, 7, CONFIG)
    assert snapshot.get_song("trickle").chart_position is None
    assert snapshot.get_song("veteran").chart_position is None
    assert len(report.entries) == CONFIG.charts.competitor_count

    fresh = make_snapshot(make_song("newcomer", 20000))
    run_chart_step(fresh, 3, 7, CONFIG)
    assert fresh.get_song("newcomer").chart_position == 99


def test_re_entry_is_not_a_debut():
    config = BalanceConfig(charts=ChartConfig(competitor_count=0))
    snapshot = make_snapshot(make_song("comeback", 9000, peak_position=5, weeks_on_chart=4))
    report = run_chart_step(snapshot, 10, 7, config)
    assert report.entries[0].position == 1 and not report.entries[0].is_debut
    assert report.changes == []
    assert snapshot.get_song("comeback").peak_position == 1


def test_movement_counts_places_climbed():
    config = BalanceConfig(charts=ChartConfig(competitor_count=0))
    snapshot = make_snapshot(make_song("a", 9000, chart_position=3, peak_position=3, weeks_on_chart=1))
    report = run_chart_step(snapshot, 5, 7, config)
    assert report.entries[0].movement == 2
