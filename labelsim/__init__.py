"""
labelsim - turn-based record label simulation engine.

Advance a label week by week: sign artists, record projects, release songs, tour,
and watch streams decay. The weekly tick is a pure function of
(snapshot, actions, balance config, seed); persistence and console output sit
outside it and are injected by the caller.
"""

__version__ = "0.1.0"

# Main simulation components
from .orchestrator import Orchestrator, advance_month, advance_week, audit_invariants
from .charts import run_chart_step

# Core interfaces
from .simulation_rules import SimulationRules, format_snapshot_summary
from .persistence import (
    PersistenceStrategy,
    InMemoryPersistence,
    JsonPersistence,
)

# Configuration
from .config import Config, BalanceConfig, build_balance_config, load_balance_config

# Errors
from .exceptions import (
    LabelSimError,
    RejectionError,
    ValidationError,
    OverdraftError,
    ConfigError,
    InvariantViolation,
    PersistenceError,
)

# Core schemas
from .schemas import (
    Action,
    ActionKind,
    AccessTiers,
    Archetype,
    Artist,
    ChangeType,
    ChartEntry,
    GameChange,
    GameState,
    MonthSummary,
    NarrativeEvent,
    Project,
    ProjectStage,
    Release,
    ScheduledEffect,
    SimulationRun,
    Snapshot,
    Song,
    Tour,
    WeekSummary,
)

# Determinism helpers
from .rng import chart_rng, press_rng, quality_rng, stable_int_seed, stream_rng, tour_rng

# Scenario loader helpers
from .scenario import load_scenario, ScenarioLoader

__all__ = [
    # Main entry points
    "Orchestrator",
    "advance_week",
    "advance_month",
    "audit_invariants",
    "run_chart_step",
    # Core interfaces
    "SimulationRules",
    "format_snapshot_summary",
    "PersistenceStrategy",
    "InMemoryPersistence",
    "JsonPersistence",
    # Configuration
    "Config",
    "BalanceConfig",
    "build_balance_config",
    "load_balance_config",
    # Errors
    "LabelSimError",
    "RejectionError",
    "ValidationError",
    "OverdraftError",
    "ConfigError",
    "InvariantViolation",
    "PersistenceError",
    # Schemas
    "Action",
    "ActionKind",
    "AccessTiers",
    "Archetype",
    "Artist",
    "ChangeType",
    "ChartEntry",
    "GameChange",
    "GameState",
    "MonthSummary",
    "NarrativeEvent",
    "Project",
    "ProjectStage",
    "Release",
    "ScheduledEffect",
    "SimulationRun",
    "Snapshot",
    "Song",
    "Tour",
    "WeekSummary",
    # Determinism
    "chart_rng",
    "press_rng",
    "quality_rng",
    "stable_int_seed",
    "stream_rng",
    "tour_rng",
    # Scenario helpers
    "load_scenario",
    "ScenarioLoader",
]
