"""
Access tier progression.

Three independent tracks (playlist, press, venue) each hold an ordered list of
reputation thresholds. A track climbs at most one tier per week even if reputation
has jumped past several thresholds; the next step waits for a later week. Every
unlock is written once to GameState.tier_unlock_history and never rewritten.
"""

from typing import List, Optional

from .config import BalanceConfig
from .exceptions import ConfigError
from .schemas import ChangeType, GameChange, GameState


def tier_index(track: str, tier: str, config: BalanceConfig) -> int:
    """Position of `tier` on `track` (0 for unknown tiers)."""
    names = [step.name for step in config.progression.tracks.get(track, [])]
    return names.index(tier) if tier in names else 0


def history_key(track: str, tier: str) -> str:
    return f"{track}:{tier}"


def check_tier_progression(game: GameState, config: BalanceConfig) -> List[GameChange]:
    """Upgrade each track by at most one tier if reputation allows.

    Mutates `game.access` and `game.tier_unlock_history`.

    Returns:
        One "unlock" change per track that moved this week.
    """
    changes: List[GameChange] = []
    for track, steps in config.progression.tracks.items():
        if not hasattr(game.access, track):
            raise ConfigError(key=f"progression.tracks.{track}", reason="unknown access track")

        current = getattr(game.access, track)
        index = tier_index(track, current, config)
        if index + 1 >= len(steps):
            continue

        next_step = steps[index + 1]
        if game.reputation < next_step.threshold:
            continue

        setattr(game.access, track, next_step.name)
        key = history_key(track, next_step.name)
        if key in game.tier_unlock_history:
            # Already unlocked once before; the history stays as first written
            continue
        game.tier_unlock_history[key] = game.week
        changes.append(
            GameChange(
                type=ChangeType.UNLOCK,
                description=f"{track.title()} access upgraded to {next_step.name}",
                metadata={"track": track, "tier": next_step.name, "threshold": next_step.threshold},
            )
        )
    return changes


def check_focus_slot_unlock(game: GameState, config: BalanceConfig) -> Optional[GameChange]:
    """Grant the extra focus slot once reputation reaches the unlock threshold."""
    progression = config.progression
    if game.focus_slots >= progression.max_focus_slots:
        return None
    if game.reputation < progression.focus_slot_unlock_reputation:
        return None

    game.focus_slots += 1
    key = history_key("focus_slots", str(game.focus_slots))
    game.tier_unlock_history.setdefault(key, game.week)
    return GameChange(
        type=ChangeType.UNLOCK,
        description=f"Focus slot unlocked ({game.focus_slots} actions per week)",
        metadata={"track": "focus_slots", "slots": game.focus_slots},
    )
