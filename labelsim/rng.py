"""
Seeded random streams for the weekly tick.

Each kind of draw the simulation makes has its own factory below. A factory hashes
the game seed, the week and the entity the draw is about into a fresh random.Random,
so rolling one song's quality never shifts another song's streams, and adding a tour
city never reshuffles the chart. Python's randomized hash() is never involved, so a
week replays identically across processes and platforms.

Streams:
- quality: one per recorded song, consumed by the quality variance roll
- streams: one per released song, consumed by its release-week estimate
- press: one per release, consumed by the pickup roll
- tour: one per tour city played
- chart: one per week, consumed by competitor variance in order
"""

import hashlib
import json
import random
from typing import Any

SALT = "labelsim"


def stable_int_seed(*parts: Any) -> int:
    """Stable 32-bit seed: SHA-256 over the canonical JSON form of `parts`."""
    payload = json.dumps(parts, ensure_ascii=False, separators=(",", ":"), default=str)
    digest = hashlib.sha256((SALT + "|" + payload).encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big", signed=False)


def _draws(purpose: str, seed: int, week: int, *entity: Any) -> random.Random:
    return random.Random(stable_int_seed(seed, week, purpose, *entity))


def quality_rng(seed: int, week: int, song_id: str) -> random.Random:
    """Quality variance roll for a song recorded this week."""
    return _draws("quality", seed, week, song_id)


def stream_rng(seed: int, week: int, song_id: str) -> random.Random:
    """Release-week stream variance for a song dropping this week."""
    return _draws("streams", seed, week, song_id)


def press_rng(seed: int, week: int, release_id: str) -> random.Random:
    return _draws("press", seed, week, release_id)


def tour_rng(seed: int, week: int, tour_id: str, city: int) -> random.Random:
    """Attendance variance for one city; city is the 0-based stop index."""
    return _draws("tour", seed, week, tour_id, city)


def chart_rng(seed: int, week: int) -> random.Random:
    """Competitor variance for this week's chart."""
    return _draws("chart", seed, week)
