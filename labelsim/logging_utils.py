"""Console reporting for labelsim runs.

Each line is tied to a step of the weekly tick. Steps that only apply rules print
blue, steps that consume seeded draws print yellow, so a reader can tell at a glance
which lines would change under a different seed. Every line also carries a text tag
for readers without colour.
"""

import os
from enum import Enum, IntEnum
from typing import NamedTuple


class Color(Enum):
    """ANSI color codes for terminal output."""

    BLUE = "\033[94m"      # Rule-only steps
    YELLOW = "\033[93m"    # Steps drawing from seeded streams
    RED = "\033[91m"       # Rejections and forced story beats
    GREEN = "\033[92m"     # Week committed
    CYAN = "\033[96m"      # Run metadata

    BOLD = "\033[1m"
    RESET = "\033[0m"


class TickStep(IntEnum):
    """Steps of advance_week, numbered in execution order."""

    VALIDATE = 1
    ACTIONS = 2
    SCHEDULE = 3
    DELAYED = 4
    PROJECTS = 5
    PSYCHOLOGY = 6
    REVENUE = 7
    CHART = 8
    TIERS = 9
    ARCHETYPES = 10
    SUMMARY = 11


class StepStyle(NamedTuple):
    label: str
    color: Color
    tag: str


TAG_RULES = "[•]"
TAG_SEEDED = "[rng]"
TAG_ALERT = "[!]"
TAG_COMMITTED = "[✓]"
TAG_RUN = "[i]"

STEP_STYLES = {
    TickStep.VALIDATE: StepStyle("validate", Color.RED, TAG_ALERT),
    TickStep.ACTIONS: StepStyle("actions", Color.BLUE, TAG_RULES),
    TickStep.SCHEDULE: StepStyle("schedule", Color.BLUE, TAG_RULES),
    TickStep.DELAYED: StepStyle("delayed", Color.BLUE, TAG_RULES),
    TickStep.PROJECTS: StepStyle("projects", Color.YELLOW, TAG_SEEDED),
    TickStep.PSYCHOLOGY: StepStyle("psychology", Color.RED, TAG_ALERT),
    TickStep.REVENUE: StepStyle("revenue", Color.YELLOW, TAG_SEEDED),
    TickStep.CHART: StepStyle("chart", Color.YELLOW, TAG_SEEDED),
    TickStep.TIERS: StepStyle("tiers", Color.BLUE, TAG_RULES),
    TickStep.ARCHETYPES: StepStyle("archetypes", Color.BLUE, TAG_RULES),
    TickStep.SUMMARY: StepStyle("summary", Color.GREEN, TAG_COMMITTED),
}


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes unless LABELSIM_NO_COLOR is set."""
    if os.getenv("LABELSIM_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def format_step(week: int, step: int, message: str) -> str:
    """Render one step line without colour, e.g. "[rng] [Week 3] revenue: 12,400 streams"."""
    style = STEP_STYLES[TickStep(step)]
    return f"{style.tag} [Week {week}] {style.label}: {message}"


def log_step(week: int, step: int, message: str) -> None:
    """Print a line for one tick step in that step's colour.

    Args:
        week: Game week the step ran in
        step: TickStep (or its number)
        message: What the step did
    """
    style = STEP_STYLES[TickStep(step)]
    print(colored(f"  {format_step(week, step, message)}", style.color, bold=step == TickStep.SUMMARY))


def log_rejection(message: str) -> None:
    """Print a rejected week or a failed listener (red)."""
    print(colored(f"  {TAG_ALERT} {message}", Color.RED))


def log_run(message: str) -> None:
    """Print run metadata (cyan)."""
    print(colored(f"{TAG_RUN} {message}", Color.CYAN))
