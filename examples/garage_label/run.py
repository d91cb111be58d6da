"""
Garage Label: a scripted label manager
======================================

WHAT THIS SHOWS:
- Loading a scenario into a starting Snapshot
- A SimulationRules subclass that plans each week's actions from plain if/then logic
- Running the Orchestrator with JSON persistence and a tick listener
- Reading the weekly summaries back

RUN:
    uv run python examples/garage_label/run.py
"""

import asyncio
from typing import List

from labelsim import (
    Action,
    ActionKind,
    Config,
    JsonPersistence,
    Orchestrator,
    ProjectStage,
    SimulationRules,
    Snapshot,
    WeekSummary,
    load_balance_config,
    load_scenario,
)
from labelsim.formulas import minimum_viable_cost


# ============================================================================
# STEP 1: Define the manager's policy
# ============================================================================


class SteadyManager(SimulationRules):
    """
    One EP at a time per artist, released as soon as it is recorded.

    - Start a 4-song EP with a regional producer at the minimum viable budget
    - Plan a release (with a small digital push) for every recorded project
    - Book a short club tour once venues are unlocked and cash allows
    - Call a morale meeting when anyone's mood sinks below 40
    """

    def __init__(self, config):
        self.config = config

    def plan_actions(self, snapshot: Snapshot, week: int) -> List[Action]:
        actions: List[Action] = []
        slots = snapshot.game.focus_slots
        budget_left = snapshot.game.money
        scheduled = {sid for r in snapshot.releases for sid in r.song_ids}

        for artist in snapshot.signed_artists():
            if len(actions) >= slots:
                break
            projects = [p for p in snapshot.projects if p.artist_id == artist.id]

            recorded = [p for p in projects if p.stage == ProjectStage.RECORDED]
            for project in recorded:
                song_ids = [s.id for s in snapshot.songs_for_project(project.id) if s.id not in scheduled]
                if song_ids and budget_left > 2000 and len(actions) < slots:
                    actions.append(
                        Action(
                            action_id=f"release-{artist.id}-{week}",
                            kind=ActionKind.PLAN_RELEASE,
                            artist_id=artist.id,
                            parameters={
                                "song_ids": song_ids,
                                "title": project.title,
                                "release_week": week + 1,
                                "marketing": {"digital": 2000},
                            },
                        )
                    )
                    budget_left -= 2000

            in_flight = [p for p in projects if p.stage.rank < ProjectStage.RECORDED.rank]
            per_song = minimum_viable_cost("ep", "regional", "standard", 4, self.config)
            if not in_flight and not recorded and budget_left > per_song * 4 + 20000 and len(actions) < slots:
                actions.append(
                    Action(
                        action_id=f"ep-{artist.id}-{week}",
                        kind=ActionKind.START_PROJECT,
                        artist_id=artist.id,
                        parameters={
                            "title": f"{artist.name} EP {week}",
                            "project_type": "ep",
                            "song_count": 4,
                            "producer_tier": "regional",
                            "time_investment": "standard",
                            "budget_per_song": per_song,
                        },
                    )
                )
                budget_left -= per_song * 4

        if len(actions) < slots and snapshot.game.access.venue != "none" and budget_left > 40000:
            headliner = max(snapshot.signed_artists(), key=lambda a: (a.popularity, a.id), default=None)
            if headliner is not None and snapshot.active_tour_for(headliner.id) is None:
                actions.append(
                    Action(
                        action_id=f"tour-{headliner.id}-{week}",
                        kind=ActionKind.BOOK_TOUR,
                        artist_id=headliner.id,
                        parameters={"venue_tier": "clubs", "venue_capacity": 200, "cities": 3, "budget": 3000},
                    )
                )

        if len(actions) < slots and any(a.mood < 40 for a in snapshot.signed_artists()):
            actions.append(
                Action(
                    action_id=f"morale-{week}",
                    kind=ActionKind.ROLE_MEETING,
                    choice_id="team_dinner",
                    effects_immediate={"artist_mood": 3, "money": -500},
                    effects_delayed={"artist_loyalty": 2},
                    effect_offset=2,
                )
            )
        return actions

    def validate_action(self, action: Action, snapshot: Snapshot):
        if action.kind == ActionKind.SIGN_ARTIST:
            return "this manager does not sign new artists"
        return None

    def on_week_end(self, snapshot: Snapshot, summary: WeekSummary) -> None:
        for event in summary.events:
            print(f"  ! {event.description}")


# ============================================================================
# STEP 2: Run Simulation
# ============================================================================


async def main():
    print("=" * 60)
    print("GARAGE LABEL")
    print("=" * 60)
    print()

    config = load_balance_config()
    snapshot = load_scenario("garage_label")

    def print_money(week, previous, new, summary):
        print(f"  week {week}: +{summary.revenue} / -{summary.expenses}, {summary.streams:,} streams")

    orchestrator = Orchestrator(
        snapshot,
        config=config,
        simulation_rules=SteadyManager(config),
        persistence=JsonPersistence(Config.DATA_DIR),
        tick_listeners=[print_money],
        verbose=True,
    )
    result = await orchestrator.run(num_weeks=Config.DEFAULT_WEEKS)

    final = result["final_snapshot"]
    print()
    print(f"Run {result['run_id']} finished at week {final.game.week}")
    print(f"Money: {final.game.money:,}  Reputation: {final.game.reputation:.1f}")
    print(f"Access: {final.game.access.model_dump()}")
    for song in final.songs:
        if song.peak_position is not None:
            print(f"  '{song.title}' peaked at #{song.peak_position} ({song.weeks_on_chart} weeks on chart)")


if __name__ == "__main__":
    asyncio.run(main())
