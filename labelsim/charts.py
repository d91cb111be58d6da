"""
Weekly chart: the label's songs ranked against a simulated industry.

Runs after the revenue step, so each released song's last_week_streams is this
week's total. The field of competitors is rebuilt every week from evenly spaced base
streams with a seeded variance, then everything is ranked by streams with the entry
id breaking ties. Player songs that fall outside the chart, or trip an exit rule
(a long tenure in the lower reaches, or a trickle of streams), are left off and the
rows below them move up.

A song debuts the first week it charts. Re-entries are not debuts.
"""

import random
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from .config import BalanceConfig
from .rng import chart_rng
from .schemas import ChangeType, ChartEntry, GameChange, Snapshot, Song


class ChartReport(BaseModel):
    """This week's chart plus the change records it produced."""

    entries: List[ChartEntry] = Field(default_factory=list)
    changes: List[GameChange] = Field(default_factory=list)


def competitor_field(rng: random.Random, config: BalanceConfig) -> List[Tuple[str, str, int]]:
    """(entry_id, title, streams) for every simulated competitor this week."""
    c = config.charts
    low, high = c.competitor_variance_range
    field = []
    for index in range(c.competitor_count):
        step = index / max(1, c.competitor_count - 1)
        base = c.competitor_top_streams - step * (c.competitor_top_streams - c.competitor_bottom_streams)
        streams = round(base * rng.uniform(low, high))
        field.append((f"competitor-{index + 1:03d}", f"Competitor #{index + 1}", streams))
    return field


def stays_on_chart(streams: int, weeks_on_chart: int, position: int, config: BalanceConfig) -> bool:
    c = config.charts
    if position > c.max_chart_position:
        return False
    if weeks_on_chart > c.long_tenure_weeks and position > c.long_tenure_position_threshold:
        return False
    if streams < c.low_streams_threshold and position > c.low_streams_position_threshold:
        return False
    return True


def rank_entries(rows: List[Tuple[str, int]]) -> List[Tuple[str, int]]:
    """Sort (entry_id, streams) by streams descending, entry id ascending."""
    return sorted(rows, key=lambda row: (-row[1], row[0]))


def run_chart_step(snapshot: Snapshot, week: int, seed: int, config: BalanceConfig) -> ChartReport:
    """Compile this week's chart and update every released song's chart standing."""
    report = ChartReport()
    competitors = competitor_field(chart_rng(seed, week), config)
    titles = {entry_id: title for entry_id, title, _ in competitors}
    songs = {song.id: song for song in snapshot.songs if song.released and song.last_week_streams > 0}

    ranked = rank_entries(
        [(entry_id, streams) for entry_id, _, streams in competitors]
        + [(song.id, song.last_week_streams) for song in songs.values()]
    )

    # Exit rules judge each song by its overall rank before anything drops out
    charting = []
    for rank, (entry_id, streams) in enumerate(ranked, start=1):
        song: Optional[Song] = songs.get(entry_id)
        if song is not None and not stays_on_chart(streams, song.weeks_on_chart, rank, config):
            continue
        charting.append((entry_id, streams))

    placed = set()
    for position, (entry_id, streams) in enumerate(charting[: config.charts.max_chart_position], start=1):
        song = songs.get(entry_id)
        if song is None:
            report.entries.append(
                ChartEntry(position=position, entry_id=entry_id, title=titles[entry_id], streams=streams)
            )
            continue

        debut = song.peak_position is None
        movement = song.chart_position - position if song.chart_position is not None else 0
        song.chart_position = position
        song.peak_position = position if debut else min(song.peak_position, position)
        song.weeks_on_chart += 1
        placed.add(song.id)
        report.entries.append(
            ChartEntry(
                position=position,
                entry_id=entry_id,
                title=song.title,
                streams=streams,
                song_id=song.id,
                artist_id=song.artist_id,
                is_debut=debut,
                movement=movement,
            )
        )
        if debut:
            report.changes.append(
                GameChange(
                    type=ChangeType.CHART_DEBUT,
                    description=f"'{song.title}' debuts at #{position}",
                    artist_id=song.artist_id,
                    project_id=song.project_id,
                    song_id=song.id,
                    metadata={"position": position, "streams": streams},
                )
            )

    for song in snapshot.songs:
        if song.released and song.id not in placed:
            song.chart_position = None
    return report
