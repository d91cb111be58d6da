"""
Revenue/decay engine: everything that moves money after projects and moods settle.

Order within a week:
1. Releases that came due drop their songs (lead singles first), rolling release-week
   streams, press pickup and a quality-driven reputation change.
2. Every released song earns this week's streams: the release-week estimate on its
   release week, geometric decay afterwards with the campaign and awareness tails.
   Songs whose weekly revenue falls under the minimum threshold earn nothing.
3. Streams feed artist popularity.
4. Active tours play one city each.
5. Weekly overhead is paid.

Each money movement is mirrored by a GameChange carrying the signed amount so the
week's ledger can be reconciled against the money delta.
"""

from typing import Dict, List

from pydantic import BaseModel, Field

from .config import BalanceConfig
from .formulas import (
    clamp,
    decayed_streams,
    initial_streams,
    press_pickup_chance,
    release_reputation_gain,
    season_for_week,
    step_awareness,
    stream_revenue,
    streaming_popularity_bonus,
    tour_city_outcome,
    tour_financials,
    tour_mood_impact,
    tour_popularity_gain,
    weekly_burn,
)
from .rng import press_rng, stream_rng, tour_rng
from .schemas import ChangeType, GameChange, Release, Snapshot, Song, Tour


class RevenueReport(BaseModel):
    """What the revenue step produced, beyond the snapshot mutations."""

    changes: List[GameChange] = Field(default_factory=list)
    streams: int = 0
    # artist_id -> revenue earned this week (streaming + touring)
    artist_revenue: Dict[str, int] = Field(default_factory=dict)
    # artist_id -> songs released this week
    releases: Dict[str, int] = Field(default_factory=dict)

    def credit(self, artist_id: str, amount: int) -> None:
        self.artist_revenue[artist_id] = self.artist_revenue.get(artist_id, 0) + amount


def _split_marketing(marketing: Dict[str, int], share: float, songs: int) -> Dict[str, int]:
    return {channel: round(spend * share / max(1, songs)) for channel, spend in marketing.items()}


def _drop_song(
    song: Song,
    release: Release,
    marketing: Dict[str, int],
    snapshot: Snapshot,
    week: int,
    seed: int,
    config: BalanceConfig,
    report: RevenueReport,
) -> None:
    artist = snapshot.get_artist(song.artist_id)
    game = snapshot.game
    song.released = True
    song.release_week = week
    song.release_id = release.id
    song.marketing = marketing
    song.initial_streams = initial_streams(
        song.quality,
        game.access.playlist,
        game.reputation,
        sum(marketing.values()),
        artist.popularity if artist else 0,
        config,
        stream_rng(seed, week, song.id),
        release_week=week,
    )
    report.releases[song.artist_id] = report.releases.get(song.artist_id, 0) + 1
    report.changes.append(
        GameChange(
            type=ChangeType.SONG_RELEASE,
            description=f"'{song.title}' released ({song.initial_streams:,} first-week streams)",
            artist_id=song.artist_id,
            project_id=song.project_id,
            song_id=song.id,
            metadata={
                "release_id": release.id,
                "initial_streams": song.initial_streams,
                "season": season_for_week(week, config),
            },
        )
    )


def _press_and_reputation(
    release: Release,
    songs: List[Song],
    snapshot: Snapshot,
    week: int,
    seed: int,
    config: BalanceConfig,
    report: RevenueReport,
) -> None:
    game = snapshot.game
    gain = release_reputation_gain((song.quality for song in songs), config)
    chance = press_pickup_chance(game.access.press, release.marketing.get("pr", 0), config)
    picked_up = press_rng(seed, week, release.id).random() < chance
    if picked_up:
        gain += config.press.reputation_gain
        for song in songs:
            song.awareness = min(config.awareness.max_awareness, song.awareness + config.press.awareness_bonus)
        report.changes.append(
            GameChange(
                type=ChangeType.PRESS,
                description=f"Press picked up '{release.title}'",
                artist_id=release.artist_id,
                metadata={"release_id": release.id, "chance": round(chance, 4)},
            )
        )
    if gain:
        game.reputation = clamp(game.reputation + gain, 0, 100)
        report.changes.append(
            GameChange(
                type=ChangeType.REPUTATION,
                description=f"Reputation {'up' if gain > 0 else 'down'} after '{release.title}'",
                amount=gain,
                artist_id=release.artist_id,
            )
        )


def process_releases(
    snapshot: Snapshot,
    week: int,
    seed: int,
    config: BalanceConfig,
    report: RevenueReport,
) -> None:
    """Drop lead singles and main releases whose week has come."""
    lead_share = config.projects.lead_single_marketing_share
    for release in snapshot.releases:
        if release.status == "released":
            continue

        if (
            release.status == "planned"
            and release.lead_single_song_id is not None
            and release.lead_single_week is not None
            and release.lead_single_week <= week
        ):
            lead = snapshot.get_song(release.lead_single_song_id)
            if lead is not None and not lead.released:
                _drop_song(lead, release, _split_marketing(release.marketing, lead_share, 1), snapshot, week, seed, config, report)
            release.status = "lead_single_out"

        if release.release_week > week:
            continue

        remaining = [s for s in (snapshot.get_song(sid) for sid in release.song_ids) if s is not None and not s.released]
        share = 1 - lead_share if release.status == "lead_single_out" else 1.0
        marketing = _split_marketing(release.marketing, share, len(remaining))
        for song in remaining:
            _drop_song(song, release, marketing, snapshot, week, seed, config, report)
        release.status = "released"
        report.changes.append(
            GameChange(
                type=ChangeType.RELEASE,
                description=f"'{release.title}' is out",
                artist_id=release.artist_id,
                metadata={"release_id": release.id, "songs": len(release.song_ids)},
            )
        )
        released_songs = [s for s in (snapshot.get_song(sid) for sid in release.song_ids) if s is not None]
        _press_and_reputation(release, released_songs, snapshot, week, seed, config, report)


def process_streaming(snapshot: Snapshot, week: int, config: BalanceConfig, report: RevenueReport) -> None:
    """Credit this week's streams for every released song and update awareness."""
    game = snapshot.game
    artist_streams: Dict[str, int] = {}
    for song in snapshot.songs:
        if not song.released or song.release_week is None:
            continue
        artist = snapshot.get_artist(song.artist_id)
        popularity = artist.popularity if artist else 0
        weeks_since = week - song.release_week

        awareness, gain = step_awareness(song.awareness, weeks_since, song.marketing, song.quality, popularity, config)
        song.awareness = round(awareness, 4)
        if gain > 0:
            report.changes.append(
                GameChange(
                    type=ChangeType.AWARENESS_GAIN,
                    description=f"Awareness for '{song.title}' +{gain:.1f}",
                    amount=round(gain, 2),
                    artist_id=song.artist_id,
                    song_id=song.id,
                )
            )

        if weeks_since == 0:
            streams = song.initial_streams
        else:
            streams = decayed_streams(
                song.initial_streams,
                weeks_since,
                game.reputation,
                game.access.playlist,
                song.marketing,
                song.awareness,
                config,
            )
        revenue = stream_revenue(streams, config)
        if revenue == 0:
            streams = 0

        song.last_week_streams = streams
        song.last_week_revenue = revenue
        song.total_streams += streams
        song.total_revenue += revenue
        report.streams += streams
        artist_streams[song.artist_id] = artist_streams.get(song.artist_id, 0) + streams
        if revenue:
            game.money += revenue
            report.credit(song.artist_id, revenue)
            report.changes.append(
                GameChange(
                    type=ChangeType.ONGOING_REVENUE,
                    description=f"'{song.title}' earned {revenue} from {streams:,} streams",
                    amount=revenue,
                    artist_id=song.artist_id,
                    song_id=song.id,
                    metadata={"weeks_since_release": weeks_since},
                )
            )

    for artist_id, streams in sorted(artist_streams.items()):
        artist = snapshot.get_artist(artist_id)
        if artist is None:
            continue
        bonus = streaming_popularity_bonus(streams, artist.popularity)
        if bonus > 0:
            artist.popularity = round(clamp(artist.popularity + bonus, 0, 100), 2)
            report.changes.append(
                GameChange(
                    type=ChangeType.POPULARITY,
                    description=f"{artist.name} gained popularity from streaming",
                    amount=round(bonus, 2),
                    artist_id=artist_id,
                )
            )


def _finish_tour(tour: Tour, snapshot: Snapshot, config: BalanceConfig, report: RevenueReport) -> None:
    tour.status = "completed"
    artist = snapshot.get_artist(tour.artist_id)
    financials = tour_financials(tour.results, tour.budget)
    average_sell_through = sum(r.sell_through for r in tour.results) / len(tour.results)
    average_attendance = financials["attendance"] / len(tour.results)

    mood_delta = tour_mood_impact(average_sell_through, config)
    popularity_gain = tour_popularity_gain(average_sell_through, average_attendance, config)
    if artist is not None:
        artist.mood = clamp(artist.mood + mood_delta, 0, 100)
        artist.popularity = clamp(artist.popularity + popularity_gain, 0, 100)
    report.changes.append(
        GameChange(
            type=ChangeType.TOUR,
            description=f"Tour '{tour.id}' wrapped: net {financials['net_revenue']}",
            amount=financials["net_revenue"],
            artist_id=tour.artist_id,
            metadata={
                **financials,
                "average_sell_through": round(average_sell_through, 4),
                "mood_delta": mood_delta,
                "popularity_gain": popularity_gain,
            },
        )
    )


def process_tours(
    snapshot: Snapshot,
    week: int,
    seed: int,
    config: BalanceConfig,
    report: RevenueReport,
) -> None:
    """Play one city for every active tour that has started."""
    game = snapshot.game
    for tour in snapshot.tours:
        if tour.status != "active" or week < tour.start_week:
            continue
        artist = snapshot.get_artist(tour.artist_id)
        city = tour.cities_completed
        result = tour_city_outcome(
            city,
            week,
            tour.venue_capacity,
            artist.popularity if artist else 0,
            game.reputation,
            config,
            tour_rng(seed, week, tour.id, city),
        )
        tour.results.append(result)
        tour.cities_completed += 1

        gross = result.ticket_revenue + result.merch_revenue
        game.money += gross
        report.credit(tour.artist_id, gross)
        report.changes.append(
            GameChange(
                type=ChangeType.REVENUE,
                description=(
                    f"Tour stop {city + 1}/{tour.cities_planned}: "
                    f"{result.attendance}/{result.capacity} attended"
                ),
                amount=gross,
                artist_id=tour.artist_id,
                metadata={"tour_id": tour.id, "sell_through": result.sell_through},
            )
        )
        if tour.cities_completed >= tour.cities_planned:
            _finish_tour(tour, snapshot, config, report)


def pay_weekly_burn(snapshot: Snapshot, config: BalanceConfig, report: RevenueReport) -> None:
    burn = weekly_burn(snapshot.artists, config)
    if burn <= 0:
        return
    snapshot.game.money -= burn
    report.changes.append(
        GameChange(type=ChangeType.EXPENSE, description="Weekly operating costs and artist retainers", amount=-burn)
    )


def run_revenue_step(snapshot: Snapshot, week: int, seed: int, config: BalanceConfig) -> RevenueReport:
    """Run the whole revenue/decay step for one week."""
    report = RevenueReport()
    process_releases(snapshot, week, seed, config, report)
    process_streaming(snapshot, week, config, report)
    process_tours(snapshot, week, seed, config, report)
    pay_weekly_burn(snapshot, config, report)

    for artist in snapshot.signed_artists():
        artist.recent_revenue = (artist.recent_revenue + [report.artist_revenue.get(artist.id, 0)])[-4:]
    return report
