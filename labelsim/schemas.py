"""
Core data models for labelsim.

Every entity the weekly tick reads or writes is a pydantic model so snapshots can be
deep-copied, serialized to JSON for persistence, and compared for equality in tests.
The tick never mutates the caller's Snapshot; it works on `model_copy(deep=True)` and
hands back a new one.

Layout:
- Game-level state (GameState, AccessTiers, ScheduledEffect)
- Roster and catalog entities (Artist, Project + stage payloads, Song, Release, Tour)
- Player input (Action)
- Tick output (GameChange, NarrativeEvent, WeekSummary, MonthSummary)
- Persistence records (SimulationRun)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

# Traits that are always clamped to [0, 100]
BOUNDED_TRAITS = ("mood", "stress", "creativity", "popularity", "loyalty")

WEEKS_PER_MONTH = 4


def month_of_week(week: int) -> int:
    """Month a week falls in: weeks 1-4 are month 1, weeks 5-8 month 2."""
    return max(0, week - 1) // WEEKS_PER_MONTH + 1


class ProjectStage(str, Enum):
    """Ordered project stages. Comparison uses STAGE_ORDER, never string order."""

    PLANNING = "planning"
    WRITING = "writing"
    RECORDING = "recording"
    RECORDED = "recorded"
    RELEASED = "released"

    @property
    def rank(self) -> int:
        return STAGE_ORDER.index(self)


STAGE_ORDER = [
    ProjectStage.PLANNING,
    ProjectStage.WRITING,
    ProjectStage.RECORDING,
    ProjectStage.RECORDED,
    ProjectStage.RELEASED,
]


class Archetype(str, Enum):
    VISIONARY = "Visionary"
    WORKHORSE = "Workhorse"
    TRENDSETTER = "Trendsetter"


# ============================================================================
# Game-level state
# ============================================================================


class AccessTiers(BaseModel):
    """Current tier on each of the three reputation-gated tracks."""

    playlist: str = Field("none", description="Playlist access tier")
    press: str = Field("none", description="Press access tier")
    venue: str = Field("none", description="Venue access tier")


class ScheduledEffect(BaseModel):
    """A trait change parked until a future week.

    Entries live in GameState.scheduled_effects so they survive a save/reload. The key
    is unique within the registry; firing deletes the entry, which is what makes
    at-most-once firing hold.
    """

    key: str = Field(..., description="Unique key: {action_id}-{choice_id}-delayed")
    trigger_week: int = Field(..., ge=0, description="Week on which the effect fires")
    effects: Dict[str, float] = Field(..., description="Effect key -> delta")
    # "artist" targets artist_id only; "all_signed" resolves the roster at fire time
    scope: Literal["artist", "all_signed"] = Field("all_signed", description="Artist scope")
    artist_id: Optional[str] = Field(None, description="Target artist for scope='artist'")
    # Provenance for debugging and summaries
    source_action: str = Field(..., description="Action that scheduled the effect")
    choice_id: str = Field(..., description="Choice within the action")
    created_week: int = Field(..., ge=0, description="Week the effect was scheduled")


class GameState(BaseModel):
    """Singleton per playthrough and the unit of atomic commit."""

    week: int = Field(0, ge=0, description="Weeks elapsed; the next tick processes week + 1")
    money: int = Field(..., description="Cash on hand (may dip into the overdraft)")
    reputation: float = Field(0, ge=0, le=100, description="Label reputation")
    creative_capital: int = Field(0, ge=0, description="Creative capital points")
    focus_slots: int = Field(3, ge=1, description="Actions allowed per week")
    focus_slots_used: int = Field(0, ge=0, description="Actions taken in the last week")
    access: AccessTiers = Field(default_factory=AccessTiers)
    # "track:tier" -> week unlocked. Append-only.
    tier_unlock_history: Dict[str, int] = Field(default_factory=dict)
    rng_seed: int = Field(42, description="Seed for every random draw in this game")
    scheduled_effects: List[ScheduledEffect] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Scenario-defined metadata")

    @property
    def month(self) -> int:
        """Month the last processed week belongs to (month 1 before the first tick)."""
        return month_of_week(self.week)


# ============================================================================
# Roster and catalog
# ============================================================================


class Artist(BaseModel):
    """A signed (or scouted) artist.

    Talent and work ethic feed the quality formula, where they are floored at 20 for
    stability. Mood, stress, creativity, popularity and loyalty are always in [0, 100].
    """

    id: str = Field(..., description="Unique artist identifier")
    name: str = Field(..., description="Display name")
    genre: Optional[str] = Field(None, description="Primary genre")
    talent: float = Field(50, ge=0, le=100)
    work_ethic: float = Field(50, ge=0, le=100)
    creativity: float = Field(50, ge=0, le=100)
    popularity: float = Field(0, ge=0, le=100)
    mass_appeal: float = Field(50, ge=0, le=100)
    mood: float = Field(50, ge=0, le=100)
    stress: float = Field(0, ge=0, le=100)
    loyalty: float = Field(50, ge=0, le=100)
    archetype: Archetype = Field(Archetype.WORKHORSE, description="Derived from weighted traits")
    signed: bool = Field(False)
    weekly_cost: int = Field(0, ge=0, description="Weekly retainer while signed")
    signed_week: Optional[int] = Field(None, ge=0)
    # Last four weekly revenues attributed to this artist (oldest first)
    recent_revenue: List[int] = Field(default_factory=list)
    last_intervention_week: Optional[int] = Field(None, ge=0)


class PlanningStage(BaseModel):
    stage: Literal["planning"] = "planning"
    budget_finalized: bool = False


class WritingStage(BaseModel):
    stage: Literal["writing"] = "writing"
    started_week: int = Field(..., ge=0)


class RecordingStage(BaseModel):
    stage: Literal["recording"] = "recording"
    started_week: int = Field(..., ge=0)
    songs_created: int = Field(0, ge=0)


class RecordedStage(BaseModel):
    stage: Literal["recorded"] = "recorded"
    completed_week: int = Field(..., ge=0)


class ReleasedStage(BaseModel):
    stage: Literal["released"] = "released"
    release_id: str
    released_week: int = Field(..., ge=0)


StageState = Annotated[
    Union[PlanningStage, WritingStage, RecordingStage, RecordedStage, ReleasedStage],
    Field(discriminator="stage"),
]


class Project(BaseModel):
    """A recording project moving through the stage machine.

    Stage-specific data lives in `stage_state`, a tagged union, so a recording project
    always has a songs_created counter and a planning project never does.
    """

    id: str = Field(..., description="Unique project identifier")
    title: str = Field(..., description="Working title")
    artist_id: str = Field(..., description="Owning artist")
    project_type: Literal["single", "ep", "album"] = Field("single")
    producer_tier: str = Field("local", description="local, regional, national, legendary")
    time_investment: str = Field("standard", description="rushed, standard, extended, perfectionist")
    budget_per_song: Optional[int] = Field(None, ge=0, description="None until the budget is set")
    song_count: int = Field(1, ge=1)
    total_cost: int = Field(0, ge=0)
    cost_consumed: int = Field(0, ge=0)
    created_week: int = Field(..., ge=0)
    due_week: int = Field(..., ge=0, description="Week by which the project should be recorded")
    overdue_reported: bool = Field(False)
    stage_state: StageState = Field(default_factory=PlanningStage)

    @property
    def stage(self) -> ProjectStage:
        return ProjectStage(self.stage_state.stage)


class Song(BaseModel):
    """A recorded song. Quality is set once at recording and never changes."""

    id: str
    project_id: str
    artist_id: str
    title: str
    quality: int = Field(..., ge=20, le=98)
    recorded_week: int = Field(..., ge=0)
    released: bool = False
    release_week: Optional[int] = Field(None, ge=0)
    release_id: Optional[str] = None
    initial_streams: int = Field(0, ge=0)
    total_streams: int = Field(0, ge=0)
    total_revenue: int = Field(0, ge=0)
    last_week_streams: int = Field(0, ge=0)
    last_week_revenue: int = Field(0, ge=0)
    awareness: float = Field(0, ge=0)
    # Per-channel marketing spend attributed to this song at release
    marketing: Dict[str, int] = Field(default_factory=dict)
    # Weekly chart standing; chart_position is None while off the chart
    chart_position: Optional[int] = Field(None, ge=1)
    peak_position: Optional[int] = Field(None, ge=1)
    weeks_on_chart: int = Field(0, ge=0)


class Release(BaseModel):
    """A planned or completed release of one or more recorded songs.

    A lead single, when set, drops on `lead_single_week` ahead of the main release.
    """

    id: str
    title: str
    artist_id: str
    song_ids: List[str]
    project_ids: List[str] = Field(default_factory=list)
    release_week: int = Field(..., ge=0)
    marketing: Dict[str, int] = Field(default_factory=dict, description="Channel -> spend")
    lead_single_song_id: Optional[str] = None
    lead_single_week: Optional[int] = Field(None, ge=0)
    status: Literal["planned", "lead_single_out", "released"] = "planned"

    @property
    def marketing_total(self) -> int:
        return sum(self.marketing.values())


class TourCityResult(BaseModel):
    city_index: int = Field(..., ge=0)
    week: int = Field(..., ge=0)
    capacity: int = Field(..., ge=0)
    sell_through: float = Field(..., ge=0, le=1)
    attendance: int = Field(..., ge=0)
    ticket_price: float = Field(..., ge=0)
    ticket_revenue: int = Field(..., ge=0)
    merch_revenue: int = Field(..., ge=0)


class Tour(BaseModel):
    """A multi-city tour. One city is played per week."""

    id: str
    artist_id: str
    venue_tier: str
    venue_capacity: int = Field(..., ge=1)
    cities_planned: int = Field(..., ge=1)
    cities_completed: int = Field(0, ge=0)
    budget: int = Field(..., ge=0)
    start_week: int = Field(..., ge=0)
    results: List[TourCityResult] = Field(default_factory=list)
    status: Literal["active", "completed"] = "active"


class Snapshot(BaseModel):
    """Everything one tick reads and writes."""

    game: GameState
    artists: List[Artist] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)
    songs: List[Song] = Field(default_factory=list)
    releases: List[Release] = Field(default_factory=list)
    tours: List[Tour] = Field(default_factory=list)

    def get_artist(self, artist_id: Optional[str]) -> Optional[Artist]:
        return next((a for a in self.artists if a.id == artist_id), None)

    def signed_artists(self) -> List[Artist]:
        return [a for a in self.artists if a.signed]

    def get_project(self, project_id: Optional[str]) -> Optional[Project]:
        return next((p for p in self.projects if p.id == project_id), None)

    def get_song(self, song_id: Optional[str]) -> Optional[Song]:
        return next((s for s in self.songs if s.id == song_id), None)

    def songs_for_project(self, project_id: str) -> List[Song]:
        return [s for s in self.songs if s.project_id == project_id]

    def get_release(self, release_id: Optional[str]) -> Optional[Release]:
        return next((r for r in self.releases if r.id == release_id), None)

    def active_tour_for(self, artist_id: str) -> Optional[Tour]:
        return next(
            (t for t in self.tours if t.artist_id == artist_id and t.status == "active"),
            None,
        )


# ============================================================================
# Player input
# ============================================================================


class ActionKind(str, Enum):
    ROLE_MEETING = "role_meeting"
    SIGN_ARTIST = "sign_artist"
    START_PROJECT = "start_project"
    SET_PROJECT_BUDGET = "set_project_budget"
    PLAN_RELEASE = "plan_release"
    BOOK_TOUR = "book_tour"


class Action(BaseModel):
    """One player-chosen action. Each action uses one focus slot.

    Kind-specific inputs go in `parameters`:
    - sign_artist: {"artist": {...Artist fields...}, "signing_cost": int}
    - start_project: {"title", "project_type", "song_count", "producer_tier",
      "time_investment", "budget_per_song" (optional)}
    - set_project_budget: {"budget_per_song"}
    - plan_release: {"song_ids", "release_week", "title", "marketing": {channel: spend},
      "lead_single_song_id", "lead_single_week"}
    - book_tour: {"venue_tier", "venue_capacity", "cities", "budget"}

    Any action may also carry effect maps; role meetings carry nothing else.
    """

    action_id: str = Field(..., description="Unique within the batch")
    kind: ActionKind
    artist_id: Optional[str] = Field(None, description="Target artist, when relevant")
    project_id: Optional[str] = Field(None, description="Target or new project id")
    choice_id: str = Field("default", description="Dialogue/meeting choice identifier")
    # global: all signed artists; predetermined: most popular artist; user_selected: artist_id
    target_scope: Literal["global", "predetermined", "user_selected"] = "global"
    effects_immediate: Dict[str, float] = Field(default_factory=dict)
    effects_delayed: Dict[str, float] = Field(default_factory=dict)
    effect_offset: int = Field(1, ge=1, description="Weeks until delayed effects fire")
    parameters: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Tick output
# ============================================================================


class ChangeType(str, Enum):
    EXPENSE = "expense"
    REVENUE = "revenue"
    MEETING = "meeting"
    SIGNING = "signing"
    PROJECT_STAGE = "project_stage"
    PROJECT_COMPLETE = "project_complete"
    DELAYED_EFFECT = "delayed_effect"
    UNLOCK = "unlock"
    ONGOING_REVENUE = "ongoing_revenue"
    SONG_RELEASE = "song_release"
    RELEASE = "release"
    MARKETING = "marketing"
    REPUTATION = "reputation"
    MOOD = "mood"
    POPULARITY = "popularity"
    AWARENESS_GAIN = "awareness_gain"
    TOUR = "tour"
    PRESS = "press"
    ANOMALY = "anomaly"
    EVENT = "event"
    CHART_DEBUT = "chart_debut"


class GameChange(BaseModel):
    """One human-readable change record."""

    type: ChangeType
    description: str
    amount: Optional[float] = None
    artist_id: Optional[str] = None
    project_id: Optional[str] = None
    song_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class NarrativeEvent(BaseModel):
    """A forced story beat (interventions, anomalies) surfaced to the player."""

    kind: Literal["breakdown_intervention", "fame_complications", "project_overdue"]
    week: int = Field(..., ge=0)
    description: str
    artist_id: Optional[str] = None
    project_id: Optional[str] = None


class ChartEntry(BaseModel):
    """One row of a weekly chart. Competitor rows carry no song or artist id."""

    position: int = Field(..., ge=1)
    entry_id: str
    title: str
    streams: int = Field(..., ge=0)
    song_id: Optional[str] = None
    artist_id: Optional[str] = None
    is_debut: bool = False
    # Places climbed since last week; 0 for debuts and competitors
    movement: int = 0


class WeekSummary(BaseModel):
    """Everything that changed in one week. Transient; never a durable entity."""

    week: int = Field(..., ge=1)
    month: int = Field(..., ge=1)
    starting_money: int
    ending_money: int
    money_delta: int = 0
    reputation_delta: float = 0
    revenue: int = 0
    expenses: int = 0
    streams: int = 0
    changes: List[GameChange] = Field(default_factory=list)
    # artist_id -> trait -> delta over the week
    artist_deltas: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    events: List[NarrativeEvent] = Field(default_factory=list)
    chart: List[ChartEntry] = Field(default_factory=list)


class MonthSummary(BaseModel):
    """Four weekly summaries plus their aggregate."""

    month: int = Field(..., ge=1)
    weeks: List[WeekSummary]
    starting_money: int
    ending_money: int
    money_delta: int = 0
    reputation_delta: float = 0
    revenue: int = 0
    expenses: int = 0
    streams: int = 0
    changes: List[GameChange] = Field(default_factory=list)
    artist_deltas: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    events: List[NarrativeEvent] = Field(default_factory=list)


# ============================================================================
# Persistence records
# ============================================================================


class SimulationRun(BaseModel):
    """Metadata for one orchestrated run (wall-clock bookkeeping lives only here)."""

    id: UUID = Field(..., description="Unique run identifier")
    start_time: datetime = Field(..., description="When the run started (wall-clock)")
    end_time: Optional[datetime] = Field(None, description="When the run ended (wall-clock)")
    num_weeks: int = Field(..., ge=0)
    seed: int
    status: str = Field(..., description="running, completed, failed")
    config: Dict[str, Any] = Field(default_factory=dict, description="Balance bundle used")
