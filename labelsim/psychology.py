"""
Artist psychology model.

Runs once per week for every signed artist, after projects have advanced and before
revenue is counted. Stress builds from workload and poor returns and eats into mood;
mood is pulled back toward an equilibrium band; creativity follows a slow cycle that
stress suppresses and good mood lifts. Two forced events break feedback loops: a
breakdown intervention when stress is very high and mood very low, and fame
complications when popularity and recent revenue are both very high.
"""

import math
from typing import List, Optional

from pydantic import BaseModel, Field

from .config import BalanceConfig
from .formulas import clamp
from .schemas import Archetype, Artist, NarrativeEvent


class ArtistWorkload(BaseModel):
    """What an artist went through this week, gathered by the orchestrator."""

    active_projects: int = Field(0, ge=0, description="Projects not yet recorded")
    recording_projects: int = Field(0, ge=0, description="Projects in the recording stage")
    releases: int = Field(0, ge=0, description="Releases dropping this week")
    weekly_revenue: int = Field(0, description="Revenue attributed to the artist this week")


class PsychologyResult(BaseModel):
    events: List[NarrativeEvent] = Field(default_factory=list)
    cost: int = Field(0, ge=0, description="Money spent on interventions")


def derive_archetype(artist: Artist, config: BalanceConfig) -> Archetype:
    """Highest weighted trait score wins; ties go to the first configured archetype."""
    best: Optional[Archetype] = None
    best_score = -1.0
    for name, weights in config.psychology.archetype_weights.items():
        score = sum(float(getattr(artist, trait, 0)) * weight for trait, weight in weights.items())
        if score > best_score:
            best, best_score = Archetype(name), score
    return best or artist.archetype


def _stress_delta(artist: Artist, load: ArtistWorkload, config: BalanceConfig) -> float:
    p = config.psychology
    delta = max(0, load.active_projects - p.stress_free_projects) * p.stress_per_active_project
    delta += load.recording_projects * p.recording_stress
    delta += load.releases * p.release_stress
    if artist.weekly_cost > 0 and load.weekly_revenue < artist.weekly_cost:
        delta += p.negative_roi_stress
    if load.active_projects == 0 and load.releases == 0:
        delta -= p.idle_recovery
    return delta


def _drift_toward_band(mood: float, config: BalanceConfig) -> float:
    p = config.psychology
    if mood > p.equilibrium_high:
        return max(p.equilibrium_high, mood - p.drift)
    if mood < p.equilibrium_low:
        return min(p.equilibrium_low, mood + p.drift)
    return mood


def apply_psychology(
    artist: Artist,
    load: ArtistWorkload,
    week: int,
    config: BalanceConfig,
) -> PsychologyResult:
    """Advance one artist's mood, stress, creativity and loyalty by one week.

    Mutates `artist` in place (the orchestrator only ever passes tick-local copies).
    """
    p = config.psychology
    result = PsychologyResult()

    artist.stress = round(clamp(artist.stress + _stress_delta(artist, load, config), 0, 100), 2)

    mood = artist.mood - artist.stress * p.stress_to_mood
    mood -= max(0, load.active_projects - p.workload_free_projects) * p.workload_mood_penalty
    artist.mood = round(clamp(_drift_toward_band(clamp(mood, 0, 100), config), 0, 100), 2)

    cycle = math.sin(2 * math.pi * week / p.creativity_cycle_weeks) * p.creativity_amplitude
    creativity = artist.creativity + cycle - artist.stress / 100 * p.creativity_stress_penalty
    if artist.mood >= p.high_mood_threshold:
        creativity += p.high_mood_creativity_bonus
    artist.creativity = round(clamp(creativity, 0, 100), 2)

    if artist.mood >= p.high_mood_threshold:
        artist.loyalty = clamp(artist.loyalty + p.loyalty_gain, 0, 100)
    elif artist.mood < p.low_mood_threshold:
        artist.loyalty = clamp(artist.loyalty - p.loyalty_loss, 0, 100)

    cooled_down = (
        artist.last_intervention_week is None
        or week - artist.last_intervention_week >= p.intervention_cooldown_weeks
    )
    if not cooled_down:
        return result

    if artist.stress > p.breakdown_stress and artist.mood < p.breakdown_mood:
        artist.stress = clamp(artist.stress - p.breakdown_stress_relief, 0, 100)
        artist.mood = clamp(artist.mood + p.breakdown_mood_recovery, 0, 100)
        artist.last_intervention_week = week
        result.cost = p.breakdown_cost
        result.events.append(
            NarrativeEvent(
                kind="breakdown_intervention",
                week=week,
                artist_id=artist.id,
                description=f"{artist.name} is burnt out; the label steps in with time off and support.",
            )
        )
    elif artist.popularity > p.fame_popularity and sum(artist.recent_revenue) > p.fame_monthly_revenue:
        artist.loyalty = clamp(artist.loyalty - p.fame_loyalty_loss, 0, 100)
        artist.stress = clamp(artist.stress + p.fame_stress, 0, 100)
        artist.last_intervention_week = week
        result.events.append(
            NarrativeEvent(
                kind="fame_complications",
                week=week,
                artist_id=artist.id,
                description=f"Fame is getting to {artist.name}: outside offers and pressure are mounting.",
            )
        )
    return result
