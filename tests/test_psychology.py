"""Tests for the weekly artist psychology model."""

from labelsim.config import BalanceConfig
from labelsim.psychology import ArtistWorkload, apply_psychology, derive_archetype
from labelsim.schemas import Archetype, Artist


CONFIG = BalanceConfig()


def make_artist(**overrides) -> Artist:
    fields = dict(id="nova", name="Nova", mood=50, stress=20, creativity=50, loyalty=50, signed=True)
    fields.update(overrides)
    return Artist(**fields)


def test_idle_artist_recovers_from_stress():
    artist = make_artist(stress=20)
    apply_psychology(artist, ArtistWorkload(), 1, CONFIG)
    assert artist.stress < 20


def test_heavy_workload_raises_stress_and_costs_mood():
    busy = make_artist()
    idle = make_artist()
    apply_psychology(busy, ArtistWorkload(active_projects=4, recording_projects=2, releases=1), 1, CONFIG)
    apply_psychology(idle, ArtistWorkload(), 1, CONFIG)
    assert busy.stress > idle.stress
    assert busy.mood < idle.mood


def test_mood_drifts_toward_equilibrium_band():
    high = make_artist(mood=95, stress=0)
    low = make_artist(mood=5, stress=0)
    apply_psychology(high, ArtistWorkload(), 1, CONFIG)
    apply_psychology(low, ArtistWorkload(), 1, CONFIG)
    assert high.mood < 95
    assert low.mood > 5


def test_traits_stay_in_bounds_under_extreme_load():
    artist = make_artist(mood=0, stress=100, creativity=0, loyalty=0)
    for week in range(1, 30):
        apply_psychology(artist, ArtistWorkload(active_projects=10, recording_projects=10, releases=10), week, CONFIG)
        for trait in ("mood", "stress", "creativity", "loyalty", "popularity"):
            assert 0 <= getattr(artist, trait) <= 100


def test_breakdown_intervention_fires_with_cooldown():
    artist = make_artist(mood=5, stress=95)
    load = ArtistWorkload(active_projects=3, recording_projects=1)

    result = apply_psychology(artist, load, 10, CONFIG)
    assert [e.kind for e in result.events] == ["breakdown_intervention"]
    assert result.cost == CONFIG.psychology.breakdown_cost
    assert artist.last_intervention_week == 10

    artist.mood, artist.stress = 5, 95
    again = apply_psychology(artist, load, 11, CONFIG)
    assert again.events == []
    assert again.cost == 0


def test_fame_complications_need_popularity_and_revenue():
    artist = make_artist(popularity=90, recent_revenue=[20000, 20000, 20000])
    result = apply_psychology(artist, ArtistWorkload(weekly_revenue=20000), 5, CONFIG)
    assert [e.kind for e in result.events] == ["fame_complications"]

    modest = make_artist(popularity=90, recent_revenue=[100, 100])
    assert apply_psychology(modest, ArtistWorkload(weekly_revenue=100), 5, CONFIG).events == []


def test_archetype_follows_dominant_traits():
    assert derive_archetype(make_artist(creativity=95, talent=90, work_ethic=10), CONFIG) == Archetype.VISIONARY
    assert derive_archetype(make_artist(creativity=10, talent=10, work_ethic=95, loyalty=90), CONFIG) == Archetype.WORKHORSE
    assert (
        derive_archetype(make_artist(creativity=10, talent=10, work_ethic=10, loyalty=10, popularity=95, mass_appeal=95), CONFIG)
        == Archetype.TRENDSETTER
    )
