"""
Formula engine: every numeric rule of the simulation as a named pure function.

All functions take the BalanceConfig explicitly and, where randomness is involved,
an explicit random.Random. None of them touch a Snapshot or raise for out-of-range
numeric input; inputs are clamped instead. Missing balance table entries raise
ConfigError through config.require().

Sections:
- Quality: producer skill, time investment, budget efficiency, variance
- Seasons: quarter of the year, seasonal revenue and marketing pricing
- Streaming: release-week estimate, weekly decay, marketing tail, awareness
- Press and popularity side effects of releases
- Live performance: per-city attendance and revenue, tour aftermath
- Weekly overhead
"""

from __future__ import annotations

import math
import random
from typing import Dict, Iterable, Optional, Tuple

from .config import BalanceConfig, require
from .schemas import Artist, TourCityResult


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value to [low, high]."""
    return max(low, min(high, value))


# ============================================================================
# Quality
# ============================================================================


def infer_project_type(song_count: int) -> str:
    """Guess the project type from its size when the caller does not say."""
    if song_count <= 2:
        return "single"
    if song_count <= 6:
        return "ep"
    return "album"


def economies_of_scale(song_count: int, config: BalanceConfig) -> float:
    """Per-song cost discount for larger projects (1.0 for a lone song)."""
    scale = config.economy.economies_of_scale
    if song_count >= scale.large_project:
        return scale.large_multiplier
    if song_count >= scale.medium_project:
        return scale.medium_multiplier
    if song_count >= scale.small_project:
        return scale.small_multiplier
    return 1.0


def minimum_viable_cost(
    project_type: str,
    producer_tier: str,
    time_investment: str,
    song_count: int,
    config: BalanceConfig,
) -> int:
    """Per-song budget at which the budget-efficiency ratio is exactly 1.0.

    base per-song cost x producer cost multiplier x time cost multiplier
    x economies of scale x baseline quality multiplier.
    """
    economy = config.economy
    base = require(economy.base_per_song_cost, project_type, "economy.base_per_song_cost")
    producer = require(economy.producer_cost_multipliers, producer_tier, "economy.producer_cost_multipliers")
    time = require(economy.time_cost_multipliers, time_investment, "economy.time_cost_multipliers")
    cost = base * producer * time * economies_of_scale(max(1, song_count), config)
    return max(1, round(cost * economy.baseline_quality_multiplier))


def budget_efficiency_ratio(
    budget_per_song: float,
    project_type: str,
    producer_tier: str,
    time_investment: str,
    song_count: int,
    config: BalanceConfig,
) -> float:
    minimum = minimum_viable_cost(project_type, producer_tier, time_investment, song_count, config)
    return max(0.0, budget_per_song) / minimum


def _lerp(start: float, end: float, position: float, low: float, high: float) -> float:
    return start + (end - start) * (position - low) / (high - low)


def budget_quality_multiplier(efficiency_ratio: float, config: BalanceConfig) -> float:
    """Piecewise budget-efficiency multiplier.

    Segments (ratio = actual per-song budget / minimum viable cost):
        < penalty_threshold           heavy penalty, flat min_multiplier
        penalty -> minimum_viable     below standard, rising to below_standard_end
        minimum_viable -> optimal     efficient plateau around 1.0
        optimal -> luxury             premium
        luxury -> diminishing         luxury, up to luxury_end
        > diminishing                 logarithmic tail, capped at max_multiplier

    Continuous and non-decreasing over the whole domain.
    """
    b = config.quality.budget
    ratio = max(0.0, efficiency_ratio)

    if ratio < b.penalty_threshold:
        multiplier = b.min_multiplier
    elif ratio < b.minimum_viable:
        multiplier = _lerp(b.min_multiplier, b.below_standard_end, ratio, b.penalty_threshold, b.minimum_viable)
    elif ratio < b.optimal_efficiency:
        multiplier = _lerp(b.below_standard_end, b.efficient_end, ratio, b.minimum_viable, b.optimal_efficiency)
    elif ratio < b.luxury_threshold:
        multiplier = _lerp(b.efficient_end, b.premium_end, ratio, b.optimal_efficiency, b.luxury_threshold)
    elif ratio < b.diminishing_threshold:
        multiplier = _lerp(b.premium_end, b.luxury_end, ratio, b.luxury_threshold, b.diminishing_threshold)
    else:
        excess = ratio - b.diminishing_threshold
        multiplier = b.luxury_end + math.log1p(excess) * b.diminishing_factor * 0.1

    multiplier = clamp(multiplier, b.min_multiplier, b.max_multiplier)
    return 1 + b.dampening * (multiplier - 1)


def budget_efficiency_rating(efficiency_ratio: float, config: BalanceConfig) -> str:
    """Label for the segment a ratio falls in."""
    b = config.quality.budget
    if efficiency_ratio < b.penalty_threshold:
        return "Insufficient"
    if efficiency_ratio < b.minimum_viable:
        return "Below Standard"
    if efficiency_ratio < b.optimal_efficiency:
        return "Efficient"
    if efficiency_ratio < b.luxury_threshold:
        return "Premium"
    if efficiency_ratio < b.diminishing_threshold:
        return "Luxury"
    return "Excessive"


def quality_variance(combined_skill: float, rng: random.Random, config: BalanceConfig) -> float:
    """Skill-scaled variance multiplier with rare breakout and failure outliers.

    Higher combined skill narrows the normal band and softens both outliers.
    Consumes exactly one or two draws from rng.
    """
    q = config.quality
    skill = clamp(combined_skill, 0, 100) / 100
    roll = rng.random()
    if roll < q.breakout_chance:
        return q.breakout_base + q.breakout_low_skill_bonus * (1 - skill)
    if roll < q.breakout_chance + q.failure_chance:
        return q.failure_base + q.failure_skill_recovery * skill
    band = q.variance_max_pct - q.variance_skill_reduction * skill
    return 1 + rng.uniform(-band, band) / 100


def calculate_song_quality(
    artist: Artist,
    producer_tier: str,
    time_investment: str,
    budget_per_song: float,
    song_count: int,
    config: BalanceConfig,
    rng: random.Random,
    project_type: Optional[str] = None,
) -> int:
    """Quality of one newly recorded song, an integer in [min_quality, max_quality].

    base = talent * talent_weight + producer_skill * producer_weight, then in order:
    time investment (with work-ethic synergy), popularity, session fatigue, mood,
    budget efficiency, and skill-scaled variance.
    """
    q = config.quality
    project_type = project_type or infer_project_type(song_count)

    talent = clamp(artist.talent, q.trait_floor, 100)
    work_ethic = clamp(artist.work_ethic, q.trait_floor, 100)
    popularity = clamp(artist.popularity, 0, 100)
    mood = clamp(artist.mood, 0, 100)
    producer_skill = require(q.producer_skill, producer_tier, "quality.producer_skill")

    quality = talent * q.talent_weight + producer_skill * q.producer_weight

    time_factor = require(q.time_multipliers, time_investment, "quality.time_multipliers")
    quality *= time_factor * (1 + work_ethic / 100 * q.work_ethic_synergy)

    quality *= q.popularity_base + q.popularity_range * math.sqrt(popularity / 100)

    quality *= q.fatigue_decay ** max(0, song_count - q.fatigue_free_songs)

    quality *= q.mood_base + q.mood_range * mood / 100

    ratio = budget_efficiency_ratio(
        budget_per_song, project_type, producer_tier, time_investment, song_count, config
    )
    quality *= budget_quality_multiplier(ratio, config)

    quality *= quality_variance((talent + producer_skill) / 2, rng, config)

    return int(clamp(round(quality), q.min_quality, q.max_quality))


# ============================================================================
# Seasons
# ============================================================================


def season_for_week(week: int, config: BalanceConfig) -> str:
    """Quarter a game week falls in. The calendar repeats every weeks_per_year weeks."""
    s = config.seasons
    year_week = (max(1, week) - 1) % s.weeks_per_year
    quarter_length = s.weeks_per_year / len(s.quarters)
    return s.quarters[min(len(s.quarters) - 1, int(year_week // quarter_length))]


def seasonal_revenue_multiplier(week: int, config: BalanceConfig) -> float:
    return require(config.seasons.revenue_multipliers, season_for_week(week, config), "seasons.revenue_multipliers")


def release_marketing_cost(
    marketing_total: float,
    release_week: int,
    lead_single_week: Optional[int],
    config: BalanceConfig,
) -> int:
    """Cash a release campaign costs after seasonal pricing.

    The lead single's share of the budget is priced in the lead single's own quarter,
    the rest in the quarter of the main release.
    """
    costs = config.seasons.marketing_cost_multipliers
    main_rate = require(costs, season_for_week(release_week, config), "seasons.marketing_cost_multipliers")
    if lead_single_week is None:
        return round(max(0.0, marketing_total) * main_rate)
    share = config.projects.lead_single_marketing_share
    lead_rate = require(costs, season_for_week(lead_single_week, config), "seasons.marketing_cost_multipliers")
    return round(max(0.0, marketing_total) * (share * lead_rate + (1 - share) * main_rate))


# ============================================================================
# Streaming
# ============================================================================


def initial_streams(
    quality: float,
    playlist_tier: str,
    reputation: float,
    marketing_spend: float,
    popularity: float,
    config: BalanceConfig,
    rng: random.Random,
    release_week: Optional[int] = None,
) -> int:
    """Release-week streams for one song.

    When release_week is given the estimate is scaled by that week's seasonal
    revenue multiplier.
    """
    s = config.streaming
    reach = require(s.playlist_reach, playlist_tier, "streaming.playlist_reach")
    popularity = clamp(popularity, 0, 100)

    points = (
        clamp(quality, 0, 100) * s.quality_weight
        + reach * s.playlist_weight * 100
        + clamp(reputation, 0, 100) * s.reputation_weight
        + math.sqrt(max(0.0, marketing_spend) / 1000) * s.marketing_weight * 50
        + popularity * s.popularity_weight
    )
    points *= 1 + popularity / 100 * s.star_power_max_multiplier
    if release_week is not None:
        points *= seasonal_revenue_multiplier(release_week, config)
    variance = rng.uniform(s.variance_min, s.variance_max)
    return max(0, round(points * variance * s.first_week_multiplier * s.base_streams_per_point))


def reputation_bonus(reputation: float, config: BalanceConfig) -> float:
    return 1 + (clamp(reputation, 0, 100) - 50) * config.decay.reputation_bonus_factor


def access_tier_bonus(playlist_tier: str, config: BalanceConfig) -> float:
    """Decay-phase multiplier from playlist reach; below 1.0 for tiers reaching under 1.0."""
    reach = require(config.streaming.playlist_reach, playlist_tier, "streaming.playlist_reach")
    return 1 + (reach - 1) * config.decay.access_tier_bonus_factor


def marketing_factor(weeks_since_release: int, marketing: Dict[str, int], config: BalanceConfig) -> float:
    """Stream lift from the release campaign during its early weeks."""
    d = config.decay
    if not (d.marketing_first_week <= weeks_since_release <= d.marketing_last_week):
        return 1.0
    lift = 0.0
    for channel, spend in marketing.items():
        if spend <= 0:
            continue
        settings = require(d.channels, channel, "decay.channels")
        contribution = spend / settings.spend_unit * settings.effectiveness * settings.weight
        if channel == "pr":
            contribution *= d.pr_peak_boost if weeks_since_release == d.pr_peak_week else d.pr_off_peak
        lift += contribution
    return min(d.marketing_factor_cap, 1 + lift)


def awareness_modifier(weeks_since_release: int, awareness: float, config: BalanceConfig) -> float:
    """Stream multiplier from accumulated awareness, active once the campaign is over."""
    a = config.awareness
    if weeks_since_release < a.boost_start_week or awareness <= 0:
        return 1.0
    boost = a.late_boost if weeks_since_release >= a.late_boost_week else a.early_boost
    return min(a.modifier_cap, 1 + awareness / 100 * boost)


def decayed_streams(
    initial: int,
    weeks_since_release: int,
    reputation: float,
    playlist_tier: str,
    marketing: Dict[str, int],
    awareness: float,
    config: BalanceConfig,
) -> int:
    """Streams for a song `weeks_since_release` weeks after its release week.

    initial x decay^weeks x reputation bonus x access-tier bonus, lifted by the
    campaign in weeks 2-4 and by awareness from week 5. Zero outside
    (0, max_decay_weeks].
    """
    d = config.decay
    if weeks_since_release <= 0 or weeks_since_release > d.max_decay_weeks:
        return 0
    streams = initial * d.weekly_decay_rate ** weeks_since_release
    streams *= reputation_bonus(reputation, config)
    streams *= access_tier_bonus(playlist_tier, config)
    streams *= marketing_factor(weeks_since_release, marketing, config)
    streams *= awareness_modifier(weeks_since_release, awareness, config)
    return max(0, round(streams))


def stream_revenue(streams: int, config: BalanceConfig) -> int:
    """Revenue for a week of streams; zero below the minimum revenue threshold."""
    revenue = streams * config.streaming.revenue_per_stream
    if revenue < config.decay.minimum_revenue_threshold:
        return 0
    return round(revenue)


def awareness_gain(
    marketing: Dict[str, int],
    quality: float,
    popularity: float,
    config: BalanceConfig,
) -> float:
    """Awareness built in one campaign week, capped per week."""
    raw = 0.0
    for channel, spend in marketing.items():
        if spend <= 0:
            continue
        settings = require(config.decay.channels, channel, "decay.channels")
        raw += spend / 1000 * settings.awareness_coefficient
    raw *= clamp(quality, 0, 100) / 100
    raw *= 1 + clamp(popularity, 0, 100) / 200
    return min(config.awareness.weekly_gain_cap, raw)


def step_awareness(
    current: float,
    weeks_since_release: int,
    marketing: Dict[str, int],
    quality: float,
    popularity: float,
    config: BalanceConfig,
) -> Tuple[float, float]:
    """Decay awareness by one week, then add campaign gain while it runs.

    Returns:
        (new awareness, gain added this week)
    """
    a = config.awareness
    decayed = current * (1 - a.decay_rate)
    gain = 0.0
    if 0 <= weeks_since_release < a.campaign_weeks:
        gain = awareness_gain(marketing, quality, popularity, config)
    return min(a.max_awareness, decayed + gain), gain


def streaming_popularity_bonus(
    weekly_streams: int,
    popularity: float,
    base_threshold: float = 3000,
    saturation_point: float = 35,
) -> float:
    """Popularity points earned from a week of streams.

    The threshold doubles every 25 popularity points and the multiplier saturates,
    so already-famous artists gain little.
    """
    threshold = round(base_threshold * 2 ** (popularity / 25))
    if weekly_streams < threshold:
        return 0.0
    points = min(math.log10(weekly_streams / threshold), 10)
    multiplier = 0.2 + 1.3 / (1 + (popularity / saturation_point) ** 4)
    return max(0.1, points * multiplier)


# ============================================================================
# Press and reputation
# ============================================================================


def press_pickup_chance(press_tier: str, pr_spend: float, config: BalanceConfig) -> float:
    p = config.press
    base = require(p.pickup_chance, press_tier, "press.pickup_chance")
    bonus = min(p.pr_spend_bonus_cap, max(0.0, pr_spend) / 1000 * p.pr_spend_bonus_per_1000)
    return clamp(base + bonus, 0, 1)


def release_reputation_gain(qualities: Iterable[int], config: BalanceConfig) -> int:
    """Reputation change from a release, driven by average song quality."""
    values = list(qualities)
    if not values:
        return 0
    p = config.projects
    average = sum(values) / len(values)
    gain = round((average - p.release_reputation_pivot) / p.release_reputation_divisor)
    return int(clamp(gain, p.release_reputation_min, p.release_reputation_max))


# ============================================================================
# Live performance
# ============================================================================


def expected_sell_through(popularity: float, reputation: float, config: BalanceConfig) -> float:
    t = config.tour
    sell_through = (
        t.sell_through_base
        + clamp(reputation, 0, 100) / 100 * t.reputation_modifier
        + clamp(popularity, 0, 100) / 100 * t.popularity_weight
    )
    return clamp(sell_through, 0, 1)


def ticket_price(capacity: int, popularity: float, config: BalanceConfig) -> float:
    t = config.tour
    base = t.ticket_price_base + capacity * t.ticket_price_capacity_multiplier
    return round(base * (1 + clamp(popularity, 0, 100) / 100 * t.popularity_price_factor), 2)


def tour_city_outcome(
    city_index: int,
    week: int,
    capacity: int,
    popularity: float,
    reputation: float,
    config: BalanceConfig,
    rng: random.Random,
) -> TourCityResult:
    """One show: expected sell-through perturbed by +/- variance, ticket and merch revenue."""
    t = config.tour
    variance = rng.uniform(1 - t.variance, 1 + t.variance)
    sell_through = clamp(expected_sell_through(popularity, reputation, config) * variance, 0, 1)
    attendance = round(capacity * sell_through)
    price = ticket_price(capacity, popularity, config)
    return TourCityResult(
        city_index=city_index,
        week=week,
        capacity=capacity,
        sell_through=round(sell_through, 4),
        attendance=attendance,
        ticket_price=price,
        ticket_revenue=round(attendance * price),
        merch_revenue=round(attendance * t.merch_purchase_rate * t.merch_per_head),
    )


def tour_financials(results: Iterable[TourCityResult], budget: int) -> Dict[str, int]:
    """Ticket, merch and net revenue for a tour; net subtracts the tour budget."""
    rows = list(results)
    tickets = sum(r.ticket_revenue for r in rows)
    merch = sum(r.merch_revenue for r in rows)
    return {
        "ticket_revenue": tickets,
        "merch_revenue": merch,
        "gross_revenue": tickets + merch,
        "budget": budget,
        "net_revenue": tickets + merch - budget,
        "attendance": sum(r.attendance for r in rows),
    }


def tour_mood_impact(average_sell_through: float, config: BalanceConfig) -> int:
    for ceiling, delta in config.tour.mood_impacts:
        if average_sell_through < ceiling:
            return delta
    return config.tour.mood_impacts[-1][1]


def tour_popularity_gain(average_sell_through: float, average_attendance: float, config: BalanceConfig) -> int:
    t = config.tour
    if average_sell_through <= t.popularity_gain_threshold:
        return 0
    for ceiling, gain in t.popularity_gains:
        if average_attendance < ceiling:
            return gain
    return t.popularity_gains[-1][1]


# ============================================================================
# Overhead
# ============================================================================


def weekly_burn(artists: Iterable[Artist], config: BalanceConfig) -> int:
    """Fixed label overhead plus the retainer of every signed artist."""
    return config.economy.weekly_burn_base + sum(a.weekly_cost for a in artists if a.signed)
