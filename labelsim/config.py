"""
labelsim configuration.

Two layers live here:

- Config: process-level settings loaded from environment variables (and a .env file
  when present). Where runs are stored, which seed to default to, whether the
  orchestrator prints progress.
- BalanceConfig: the read-only numeric bundle every formula takes as an explicit
  parameter. It is assembled once (defaults, optionally overridden by a JSON file),
  validated by pydantic, frozen, and passed by reference into every call. Nothing in
  the engine reaches into a global for a balance constant.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, TypeVar

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .exceptions import ConfigError

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Optional JSON file overriding the default balance bundle
    BALANCE_PATH: str | None = os.getenv("LABELSIM_BALANCE_PATH")

    # Persistence
    DATA_DIR: str = os.getenv("LABELSIM_DATA_DIR", "simulation_runs")

    # Simulation defaults
    DEFAULT_SEED: int = int(os.getenv("LABELSIM_DEFAULT_SEED", "42"))
    DEFAULT_WEEKS: int = int(os.getenv("LABELSIM_DEFAULT_WEEKS", "12"))

    # Console output
    VERBOSE: bool = os.getenv("LABELSIM_VERBOSE", "false").lower() in ("1", "true", "yes")

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    SCENARIOS_DIR: Path = PROJECT_ROOT / "examples" / "scenarios"

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if values are unusable."""
        if cls.BALANCE_PATH and not Path(cls.BALANCE_PATH).exists():
            raise ConfigError(
                key="LABELSIM_BALANCE_PATH",
                reason=f"file not found at {cls.BALANCE_PATH}",
            )
        if cls.DEFAULT_WEEKS < 1:
            raise ConfigError(
                key="LABELSIM_DEFAULT_WEEKS",
                reason="must be at least 1",
            )

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "labelsim Configuration:",
            f"  Balance file: {cls.BALANCE_PATH or '(defaults)'}",
            f"  Data dir: {cls.DATA_DIR}",
            f"  Default seed: {cls.DEFAULT_SEED}",
            f"  Default weeks: {cls.DEFAULT_WEEKS}",
            f"  Verbose: {cls.VERBOSE}",
        ]
        return "\n".join(lines)


# ============================================================================
# Balance bundle
# ============================================================================


class _Section(BaseModel):
    """Frozen base for every balance section."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class EconomiesOfScale(_Section):
    # Song-count thresholds at which the per-song discount steps down
    small_project: int = 2
    medium_project: int = 4
    large_project: int = 8
    small_multiplier: float = 0.95
    medium_multiplier: float = 0.90
    large_multiplier: float = 0.85


class EconomyConfig(_Section):
    """Money flows that are not formula outputs."""

    weekly_burn_base: int = Field(3000, ge=0, description="Fixed label overhead per week")
    overdraft_limit: int = Field(25000, ge=0, description="How far below zero money may go")
    default_signing_cost: int = Field(5000, ge=0)
    base_per_song_cost: Dict[str, int] = Field(
        default_factory=lambda: {"single": 2500, "ep": 3000, "album": 3500}
    )
    producer_cost_multipliers: Dict[str, float] = Field(
        default_factory=lambda: {"local": 1.0, "regional": 1.8, "national": 3.2, "legendary": 5.5}
    )
    time_cost_multipliers: Dict[str, float] = Field(
        default_factory=lambda: {"rushed": 0.7, "standard": 1.0, "extended": 1.4, "perfectionist": 2.0}
    )
    economies_of_scale: EconomiesOfScale = Field(default_factory=EconomiesOfScale)
    baseline_quality_multiplier: float = Field(1.5, gt=0)


class BudgetQualityConfig(_Section):
    """Breakpoints and segment end-values of the budget-efficiency curve."""

    penalty_threshold: float = 0.6
    minimum_viable: float = 0.8
    optimal_efficiency: float = 1.2
    luxury_threshold: float = 2.0
    diminishing_threshold: float = 3.5
    min_multiplier: float = 0.65
    below_standard_end: float = 0.95
    efficient_end: float = 1.05
    premium_end: float = 1.20
    luxury_end: float = 1.35
    diminishing_factor: float = 1.0
    max_multiplier: float = 1.5
    # 1.0 keeps the curve as-is; smaller values pull it toward neutral
    dampening: float = Field(1.0, ge=0, le=1)

    @model_validator(mode="after")
    def _check_ordering(self) -> "BudgetQualityConfig":
        breakpoints = [
            self.penalty_threshold,
            self.minimum_viable,
            self.optimal_efficiency,
            self.luxury_threshold,
            self.diminishing_threshold,
        ]
        if any(later <= earlier for earlier, later in zip(breakpoints, breakpoints[1:])):
            raise ValueError("efficiency breakpoints must be strictly increasing")
        ends = [
            self.min_multiplier,
            self.below_standard_end,
            self.efficient_end,
            self.premium_end,
            self.luxury_end,
        ]
        if ends != sorted(ends):
            raise ValueError("segment multipliers must be non-decreasing")
        if self.max_multiplier < self.luxury_end:
            raise ValueError("max_multiplier must not be below luxury_end")
        return self


class QualityConfig(_Section):
    """Coefficients of the song quality formula."""

    producer_skill: Dict[str, int] = Field(
        default_factory=lambda: {"local": 40, "regional": 55, "national": 75, "legendary": 95}
    )
    talent_weight: float = 0.65
    producer_weight: float = 0.35
    time_multipliers: Dict[str, float] = Field(
        default_factory=lambda: {"rushed": 0.7, "standard": 1.0, "extended": 1.1, "perfectionist": 1.2}
    )
    work_ethic_synergy: float = 0.3
    popularity_base: float = 0.95
    popularity_range: float = 0.10
    fatigue_free_songs: int = 3
    fatigue_decay: float = 0.97
    mood_base: float = 0.90
    mood_range: float = 0.20
    variance_max_pct: float = 35.0
    variance_skill_reduction: float = 30.0
    breakout_chance: float = 0.05
    breakout_base: float = 1.5
    breakout_low_skill_bonus: float = 0.5
    failure_chance: float = 0.05
    failure_base: float = 0.5
    failure_skill_recovery: float = 0.2
    min_quality: int = 20
    max_quality: int = 98
    trait_floor: int = 20
    budget: BudgetQualityConfig = Field(default_factory=BudgetQualityConfig)


class ChannelConfig(_Section):
    """One marketing channel: early-week stream lift and awareness build."""

    spend_unit: float = Field(..., gt=0)
    effectiveness: float
    weight: float
    awareness_coefficient: float


def _default_channels() -> Dict[str, ChannelConfig]:
    return {
        "radio": ChannelConfig(spend_unit=10000, effectiveness=0.85, weight=0.20, awareness_coefficient=0.1),
        "digital": ChannelConfig(spend_unit=8000, effectiveness=0.92, weight=0.25, awareness_coefficient=0.2),
        "pr": ChannelConfig(spend_unit=6000, effectiveness=0.78, weight=0.30, awareness_coefficient=0.4),
        "influencer": ChannelConfig(spend_unit=5000, effectiveness=0.88, weight=0.22, awareness_coefficient=0.3),
    }


class StreamingConfig(_Section):
    """Release-week stream estimate."""

    quality_weight: float = 0.35
    playlist_weight: float = 0.25
    reputation_weight: float = 0.20
    marketing_weight: float = 0.20
    popularity_weight: float = 0.10
    star_power_max_multiplier: float = 0.5
    variance_min: float = 0.9
    variance_max: float = 1.1
    first_week_multiplier: float = 2.5
    base_streams_per_point: float = 1000
    revenue_per_stream: float = Field(0.05, gt=0)
    playlist_reach: Dict[str, float] = Field(
        default_factory=lambda: {"none": 0.1, "niche": 0.4, "mid": 0.8, "flagship": 1.5}
    )


class DecayConfig(_Section):
    """Post-release weekly stream decay."""

    weekly_decay_rate: float = Field(0.85, gt=0, lt=1)
    max_decay_weeks: int = Field(52, ge=1)
    minimum_revenue_threshold: float = Field(1.0, ge=0)
    reputation_bonus_factor: float = 0.002
    access_tier_bonus_factor: float = 0.05
    channels: Dict[str, ChannelConfig] = Field(default_factory=_default_channels)
    marketing_first_week: int = 2
    marketing_last_week: int = 4
    pr_peak_week: int = 3
    pr_peak_boost: float = 1.2
    pr_off_peak: float = 0.8
    marketing_factor_cap: float = 1.5


class AwarenessConfig(_Section):
    """Sustained marketing tail."""

    weekly_gain_cap: float = 25.0
    max_awareness: float = 100.0
    decay_rate: float = Field(0.05, ge=0, lt=1)
    campaign_weeks: int = 4
    boost_start_week: int = 5
    late_boost_week: int = 7
    early_boost: float = 0.3
    late_boost: float = 0.5
    modifier_cap: float = 2.0


class SeasonConfig(_Section):
    """Quarter of the year a week falls in, and what each quarter does to releases."""

    weeks_per_year: int = Field(52, ge=4)
    # Quarter names in calendar order; the year splits evenly between them
    quarters: List[str] = Field(default_factory=lambda: ["q1", "q2", "q3", "q4"])
    # Release-week stream multiplier by quarter
    revenue_multipliers: Dict[str, float] = Field(
        default_factory=lambda: {"q1": 0.85, "q2": 0.95, "q3": 1.1, "q4": 1.4}
    )
    # Marketing spend multiplier by quarter of the week the campaign runs
    marketing_cost_multipliers: Dict[str, float] = Field(
        default_factory=lambda: {"q1": 0.85, "q2": 0.95, "q3": 1.1, "q4": 1.4}
    )


class ChartConfig(_Section):
    """Weekly chart: player songs ranked against a field of simulated competitors."""

    max_chart_position: int = Field(100, ge=1)
    competitor_count: int = Field(98, ge=0)
    # Competitor base streams fall evenly from the top entry to the bottom one
    competitor_top_streams: int = Field(950000, ge=0)
    competitor_bottom_streams: int = Field(50000, ge=0)
    competitor_variance_range: Tuple[float, float] = (0.8, 1.2)
    # Exit rules: a song drops off when it has charted too long or streams too little
    long_tenure_weeks: int = 30
    long_tenure_position_threshold: int = 80
    low_streams_threshold: int = 1000
    low_streams_position_threshold: int = 90


class PressConfig(_Section):
    pickup_chance: Dict[str, float] = Field(
        default_factory=lambda: {"none": 0.05, "blogs": 0.25, "mid_tier": 0.60, "national": 0.85}
    )
    pr_spend_bonus_per_1000: float = 0.0075
    pr_spend_bonus_cap: float = 0.15
    reputation_gain: int = 2
    awareness_bonus: float = 5.0


class TourConfig(_Section):
    """Live performance economics."""

    sell_through_base: float = 0.60
    reputation_modifier: float = 0.15
    popularity_weight: float = 0.40
    variance: float = Field(0.2, ge=0, lt=1)
    ticket_price_base: float = 30.0
    ticket_price_capacity_multiplier: float = 0.003
    popularity_price_factor: float = 0.5
    merch_purchase_rate: float = 0.35
    merch_per_head: float = 18.0
    venue_capacity: Dict[str, Tuple[int, int]] = Field(
        default_factory=lambda: {
            "clubs": (50, 500),
            "theaters": (500, 2000),
            "arenas": (2000, 20000),
        }
    )
    # (upper bound of average sell-through, mood delta) checked in order
    mood_impacts: List[Tuple[float, int]] = Field(
        default_factory=lambda: [(0.30, -3), (0.50, 0), (0.85, 5), (1.01, 8)]
    )
    popularity_gain_threshold: float = 0.70
    # (attendee ceiling, popularity gain) checked in order; last entry is the fallback
    popularity_gains: List[Tuple[int, int]] = Field(
        default_factory=lambda: [(500, 1), (2000, 2), (5000, 3), (10000, 5), (10**9, 7)]
    )


class PsychologyConfig(_Section):
    """Artist mood, stress and creativity dynamics."""

    equilibrium_low: float = 45
    equilibrium_high: float = 55
    drift: float = 3
    workload_free_projects: int = 2
    workload_mood_penalty: float = 5
    stress_free_projects: int = 1
    stress_per_active_project: float = 3
    recording_stress: float = 2
    release_stress: float = 3
    negative_roi_stress: float = 2
    idle_recovery: float = 4
    stress_to_mood: float = 0.05
    creativity_cycle_weeks: int = 12
    creativity_amplitude: float = 1.5
    creativity_stress_penalty: float = 3.0
    high_mood_threshold: float = 70
    high_mood_creativity_bonus: float = 2
    loyalty_gain: float = 1
    low_mood_threshold: float = 30
    loyalty_loss: float = 1
    breakdown_stress: float = 85
    breakdown_mood: float = 20
    breakdown_stress_relief: float = 30
    breakdown_mood_recovery: float = 15
    breakdown_cost: int = 5000
    fame_popularity: float = 85
    fame_monthly_revenue: float = 50000
    fame_loyalty_loss: float = 10
    fame_stress: float = 15
    intervention_cooldown_weeks: int = 4
    # Archetype score weights, trait name -> weight
    archetype_weights: Dict[str, Dict[str, float]] = Field(
        default_factory=lambda: {
            "Visionary": {"creativity": 0.6, "talent": 0.4},
            "Workhorse": {"work_ethic": 0.7, "loyalty": 0.3},
            "Trendsetter": {"popularity": 0.5, "mass_appeal": 0.5},
        }
    )


class TierStep(_Section):
    name: str
    threshold: float = Field(..., ge=0, le=100)


def _steps(*pairs: Tuple[str, float]) -> List[TierStep]:
    return [TierStep(name=name, threshold=threshold) for name, threshold in pairs]


class ProgressionConfig(_Section):
    """Reputation-gated unlock tracks and focus slots."""

    tracks: Dict[str, List[TierStep]] = Field(
        default_factory=lambda: {
            "playlist": _steps(("none", 0), ("niche", 10), ("mid", 30), ("flagship", 60)),
            "press": _steps(("none", 0), ("blogs", 8), ("mid_tier", 25), ("national", 50)),
            "venue": _steps(("none", 0), ("clubs", 5), ("theaters", 20), ("arenas", 45)),
        }
    )
    base_focus_slots: int = Field(3, ge=1)
    focus_slot_unlock_reputation: float = 50
    max_focus_slots: int = 4

    @model_validator(mode="after")
    def _check_tracks(self) -> "ProgressionConfig":
        for track, steps in self.tracks.items():
            thresholds = [step.threshold for step in steps]
            if not steps or thresholds != sorted(thresholds):
                raise ValueError(f"track '{track}' must list tiers in ascending threshold order")
        return self


class ProjectConfig(_Section):
    """Project pacing and cost consumption."""

    songs_per_week: Dict[str, int] = Field(
        default_factory=lambda: {"single": 2, "ep": 3, "album": 3}
    )
    song_count_limits: Dict[str, Tuple[int, int]] = Field(
        default_factory=lambda: {"single": (1, 2), "ep": (3, 6), "album": (8, 14)}
    )
    writing_weeks: Dict[str, int] = Field(
        default_factory=lambda: {"rushed": 1, "standard": 1, "extended": 2, "perfectionist": 3}
    )
    stage_cost_fractions: Dict[str, float] = Field(
        default_factory=lambda: {"writing": 0.25, "recording": 0.50, "recorded": 0.25}
    )
    due_grace_weeks: int = 4
    lead_single_marketing_share: float = Field(0.3, ge=0, le=1)
    release_reputation_pivot: float = 50
    release_reputation_divisor: float = 10
    release_reputation_min: int = -2
    release_reputation_max: int = 5

    @model_validator(mode="after")
    def _check_fractions(self) -> "ProjectConfig":
        total = sum(self.stage_cost_fractions.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"stage_cost_fractions must sum to 1.0 (got {total})")
        return self


class BalanceConfig(_Section):
    """The complete, read-only balance bundle."""

    economy: EconomyConfig = Field(default_factory=EconomyConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
    decay: DecayConfig = Field(default_factory=DecayConfig)
    awareness: AwarenessConfig = Field(default_factory=AwarenessConfig)
    seasons: SeasonConfig = Field(default_factory=SeasonConfig)
    charts: ChartConfig = Field(default_factory=ChartConfig)
    press: PressConfig = Field(default_factory=PressConfig)
    tour: TourConfig = Field(default_factory=TourConfig)
    psychology: PsychologyConfig = Field(default_factory=PsychologyConfig)
    progression: ProgressionConfig = Field(default_factory=ProgressionConfig)
    projects: ProjectConfig = Field(default_factory=ProjectConfig)


V = TypeVar("V")


def require(mapping: Mapping[str, V], key: str, section: str) -> V:
    """Look up a balance table entry, raising ConfigError when it is missing.

    Formulas use this instead of indexing directly so that a bundle lacking, say,
    a producer tier fails with a named key rather than a bare KeyError.
    """
    try:
        return mapping[key]
    except KeyError:
        raise ConfigError(
            key=f"{section}.{key}",
            reason=f"no entry; known keys are {sorted(mapping)}",
        ) from None


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def build_balance_config(overrides: Optional[Mapping[str, Any]] = None) -> BalanceConfig:
    """Build a BalanceConfig from defaults plus optional nested overrides.

    Raises:
        ConfigError: If the merged bundle fails validation.
    """
    if not overrides:
        return BalanceConfig()
    defaults = BalanceConfig().model_dump()
    try:
        return BalanceConfig.model_validate(_deep_merge(defaults, overrides))
    except ValidationError as exc:
        first = exc.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ())) or "balance"
        raise ConfigError(key=key, reason=first.get("msg", str(exc))) from exc


def load_balance_config(path: Optional[Path | str] = None) -> BalanceConfig:
    """Load the balance bundle, applying a JSON override file if one is given.

    Falls back to Config.BALANCE_PATH when no path is passed, and to pure defaults
    when neither is set.

    Raises:
        ConfigError: If the file is missing, not valid JSON, or fails validation.
    """
    source = path if path is not None else Config.BALANCE_PATH
    if source is None:
        return BalanceConfig()

    balance_path = Path(source)
    if not balance_path.exists():
        raise ConfigError(key=str(balance_path), reason="balance file not found")
    try:
        overrides = json.loads(balance_path.read_text("utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(key=str(balance_path), reason=f"invalid JSON: {exc}") from exc
    if not isinstance(overrides, dict):
        raise ConfigError(key=str(balance_path), reason="top level must be an object")
    return build_balance_config(overrides)
