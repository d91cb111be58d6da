"""Tests for the quality, streaming, press and touring formulas."""

import random
import statistics

import pytest

from labelsim.config import BalanceConfig, build_balance_config
from labelsim.exceptions import ConfigError
from labelsim.formulas import (
    access_tier_bonus,
    budget_efficiency_rating,
    budget_quality_multiplier,
    calculate_song_quality,
    clamp,
    decayed_streams,
    initial_streams,
    minimum_viable_cost,
    press_pickup_chance,
    release_marketing_cost,
    release_reputation_gain,
    season_for_week,
    step_awareness,
    stream_revenue,
    streaming_popularity_bonus,
    tour_city_outcome,
    tour_financials,
)
from labelsim.rng import quality_rng, stream_rng, tour_rng
from labelsim.schemas import Artist


CONFIG = BalanceConfig()


def make_artist(**overrides) -> Artist:
    fields = dict(id="a1", name="Test Artist", talent=50, work_ethic=50, popularity=50, mood=50, signed=True)
    fields.update(overrides)
    return Artist(**fields)


def test_clamp_bounds():
    assert clamp(-5, 0, 100) == 0
    assert clamp(150, 0, 100) == 100
    assert clamp(42.5, 0, 100) == 42.5


def test_budget_multiplier_is_monotone_over_whole_domain():
    ratios = [i / 100 for i in range(0, 801)]
    values = [budget_quality_multiplier(r, CONFIG) for r in ratios]
    assert all(later >= earlier for earlier, later in zip(values, values[1:]))


def test_budget_multiplier_is_continuous_at_breakpoints():
    b = CONFIG.quality.budget
    for point in (b.penalty_threshold, b.minimum_viable, b.optimal_efficiency, b.luxury_threshold, b.diminishing_threshold):
        left = budget_quality_multiplier(point - 1e-9, CONFIG)
        right = budget_quality_multiplier(point, CONFIG)
        assert left == pytest.approx(right, abs=1e-6)


def test_budget_multiplier_grows_sublinearly_past_luxury():
    b = CONFIG.quality.budget
    start = budget_quality_multiplier(b.diminishing_threshold, CONFIG)
    one_more = budget_quality_multiplier(b.diminishing_threshold + 1, CONFIG)
    two_more = budget_quality_multiplier(b.diminishing_threshold + 2, CONFIG)
    assert one_more > start
    assert two_more - one_more < one_more - start
    assert budget_quality_multiplier(1000, CONFIG) <= b.max_multiplier


def test_efficient_budget_is_neutral():
    assert budget_quality_multiplier(1.0, CONFIG) == pytest.approx(1.0)
    assert budget_efficiency_rating(1.0, CONFIG) == "Efficient"
    assert budget_efficiency_rating(0.1, CONFIG) == "Insufficient"
    assert budget_efficiency_rating(5.0, CONFIG) == "Excessive"


def test_minimum_viable_cost_scales_with_producer_and_time():
    local = minimum_viable_cost("ep", "local", "standard", 5, CONFIG)
    regional = minimum_viable_cost("ep", "regional", "standard", 5, CONFIG)
    perfectionist = minimum_viable_cost("ep", "regional", "perfectionist", 5, CONFIG)
    assert local < regional < perfectionist


def test_minimum_viable_cost_unknown_producer_raises_config_error():
    with pytest.raises(ConfigError) as excinfo:
        minimum_viable_cost("ep", "galactic", "standard", 5, CONFIG)
    assert "galactic" in str(excinfo.value)


def test_quality_calibration_band_for_average_artist():
    artist = make_artist()
    budget = minimum_viable_cost("ep", "regional", "standard", 5, CONFIG)
    qualities = [
        calculate_song_quality(artist, "regional", "standard", budget, 5, CONFIG, quality_rng(seed, 0, "calibration"), "ep")
        for seed in range(300)
    ]
    assert 55 <= statistics.mean(qualities) <= 70


def test_quality_stays_in_range_for_extreme_inputs():
    weak = make_artist(talent=0, work_ethic=0, popularity=0, mood=0)
    strong = make_artist(talent=100, work_ethic=100, popularity=100, mood=100)
    for seed in range(100):
        low = calculate_song_quality(weak, "local", "rushed", 0, 14, CONFIG, random.Random(seed))
        high = calculate_song_quality(strong, "legendary", "perfectionist", 10**7, 1, CONFIG, random.Random(seed))
        assert 20 <= low <= 98
        assert 20 <= high <= 98


def test_quality_is_reproducible_for_same_stream():
    artist = make_artist()
    first = calculate_song_quality(artist, "regional", "standard", 5000, 5, CONFIG, quality_rng(7, 3, "s1"))
    second = calculate_song_quality(artist, "regional", "standard", 5000, 5, CONFIG, quality_rng(7, 3, "s1"))
    assert first == second


def test_decay_six_weeks_matches_geometric_rate():
    initial = 40000
    streams = decayed_streams(initial, 6, 50, "none", {}, 0, CONFIG)
    expected = initial * CONFIG.decay.weekly_decay_rate ** 6 * access_tier_bonus("none", CONFIG)
    assert streams == pytest.approx(expected, abs=1)


def test_playlist_reach_sets_the_access_bonus():
    # Reach 0.1 for no playlist access, 1.5 for flagship
    assert access_tier_bonus("none", CONFIG) == pytest.approx(1 - 0.9 * CONFIG.decay.access_tier_bonus_factor)
    assert access_tier_bonus("flagship", CONFIG) == pytest.approx(1 + 0.5 * CONFIG.decay.access_tier_bonus_factor)
    assert decayed_streams(40000, 3, 50, "flagship", {}, 0, CONFIG) > decayed_streams(40000, 3, 50, "none", {}, 0, CONFIG)


def test_decay_stops_after_max_weeks():
    assert decayed_streams(40000, CONFIG.decay.max_decay_weeks + 1, 50, "none", {}, 0, CONFIG) == 0


def test_marketing_lifts_early_weeks_only():
    marketing = {"digital": 8000}
    plain = decayed_streams(40000, 2, 50, "none", {}, 0, CONFIG)
    lifted = decayed_streams(40000, 2, 50, "none", marketing, 0, CONFIG)
    assert lifted > plain
    assert decayed_streams(40000, 6, 50, "none", marketing, 0, CONFIG) == decayed_streams(
        40000, 6, 50, "none", {}, 0, CONFIG
    )


def test_awareness_boosts_post_campaign_streams():
    plain = decayed_streams(40000, 6, 50, "none", {}, 0, CONFIG)
    boosted = decayed_streams(40000, 6, 50, "none", {}, 40, CONFIG)
    assert boosted > plain


def test_step_awareness_builds_then_decays():
    awareness, gain = step_awareness(0, 0, {"pr": 6000}, 80, 20, CONFIG)
    assert gain > 0 and awareness == pytest.approx(gain)
    later, later_gain = step_awareness(awareness, 10, {"pr": 6000}, 80, 20, CONFIG)
    assert later_gain == 0
    assert later < awareness


def test_stream_revenue_floors_at_minimum_threshold():
    assert stream_revenue(10, CONFIG) == 0
    assert stream_revenue(20000, CONFIG) == 1000


def test_streaming_popularity_bonus_saturates():
    assert streaming_popularity_bonus(1000, 10) == 0
    small_star = streaming_popularity_bonus(100000, 10)
    big_star = streaming_popularity_bonus(100000, 70)
    assert small_star > big_star


def test_press_and_release_reputation():
    assert press_pickup_chance("national", 0, CONFIG) > press_pickup_chance("none", 0, CONFIG)
    assert press_pickup_chance("none", 10**9, CONFIG) == pytest.approx(0.05 + CONFIG.press.pr_spend_bonus_cap)
    assert release_reputation_gain([90, 90], CONFIG) == 4
    assert release_reputation_gain([20], CONFIG) == CONFIG.projects.release_reputation_min
    assert release_reputation_gain([], CONFIG) == 0


def test_tour_city_variance_is_bounded_and_net_subtracts_budget():
    results = [tour_city_outcome(i, 5, 400, 40, 30, CONFIG, tour_rng(1, 5, "t1", i)) for i in range(20)]
    for result in results:
        assert 0 <= result.attendance <= 400
        assert result.ticket_revenue >= 0
    financials = tour_financials(results, 5000)
    assert financials["net_revenue"] == financials["ticket_revenue"] + financials["merch_revenue"] - 5000


def test_overridden_decay_rate_is_used():
    config = build_balance_config({"decay": {"weekly_decay_rate": 0.5}})
    assert decayed_streams(1000, 1, 50, "none", {}, 0, config) == pytest.approx(500 * access_tier_bonus("none", config), abs=1)


@pytest.mark.parametrize(
    "week, season",
    [(1, "q1"), (13, "q1"), (14, "q2"), (27, "q3"), (40, "q4"), (52, "q4"), (53, "q1")],
)
def test_season_for_week_follows_the_calendar(week, season):
    assert season_for_week(week, CONFIG) == season


def test_release_marketing_cost_prices_each_part_in_its_own_season():
    assert release_marketing_cost(10000, 45, None, CONFIG) == 14000
    assert release_marketing_cost(10000, 3, None, CONFIG) == 8500
    # 30% of the campaign rides on a q3 lead single, the rest on a q4 release
    assert release_marketing_cost(10000, 45, 38, CONFIG) == round(10000 * (0.3 * 1.1 + 0.7 * 1.4))


def test_holiday_release_streams_beat_winter_release():
    winter = initial_streams(70, "niche", 40, 5000, 50, CONFIG, stream_rng(3, 1, "s1"), release_week=1)
    holiday = initial_streams(70, "niche", 40, 5000, 50, CONFIG, stream_rng(3, 1, "s1"), release_week=48)
    assert holiday == pytest.approx(winter * 1.4 / 0.85, rel=0.01)
    undated = initial_streams(70, "niche", 40, 5000, 50, CONFIG, stream_rng(3, 1, "s1"))
    assert winter == pytest.approx(undated * 0.85, rel=0.01)
