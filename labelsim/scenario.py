"""
Scenario loading for JSON-defined starting states.

A scenario is the starting Snapshot of a playthrough: the label's cash and standing,
its roster, and optionally any catalog already in flight.

Scenario file structure:
```json
{
  "name": "Garage Label",
  "description": "...",
  "recommended_weeks": 24,
  "game": {"money": 75000, "reputation": 5, "creative_capital": 10, "rng_seed": 7},
  "artists": [
    {"id": "nova", "name": "Nova", "genre": "pop", "talent": 62, "weekly_cost": 800}
  ],
  "prospects": [
    {"id": "rhea", "name": "Rhea", "genre": "indie", "talent": 71}
  ],
  "projects": [], "songs": [], "releases": [], "tours": []
}
```

`artists` are the signed roster (signed defaults to true); `prospects` are unsigned
artists the player may sign later. Archetypes are derived from traits, so a scenario
never has to spell them out.

Usage:
    loader = ScenarioLoader()
    snapshot = loader.load("garage_label")
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .config import BalanceConfig, Config
from .psychology import derive_archetype
from .schemas import Artist, GameState, Project, Release, Snapshot, Song, Tour


class ScenarioLoader:
    """Load and validate scenarios from JSON files.

    Directory structure:
    - Default: Config.SCENARIOS_DIR ({PROJECT_ROOT}/examples/scenarios/)
    - Override via constructor: ScenarioLoader(Path("/custom/scenarios"))
    - Scenario files: {scenario_name}.json

    Validation:
    - Required fields: name, description, game, artists
    - game.money is required; everything else has a default
    - Raises ValueError if validation fails
    """

    REQUIRED_FIELDS = ("name", "description", "game", "artists")

    def __init__(self, scenarios_dir: Optional[Path] = None, config: Optional[BalanceConfig] = None):
        """Initialize scenario loader.

        Args:
            scenarios_dir: Directory containing scenario files.
            config: Balance bundle used to derive archetypes (defaults to BalanceConfig())
        """
        self.scenarios_dir = scenarios_dir or Config.SCENARIOS_DIR
        self.config = config or BalanceConfig()

    def load(self, scenario_name: str, seed: Optional[int] = None) -> Snapshot:
        """Load a scenario by name and build its starting Snapshot.

        Args:
            scenario_name: Name of scenario (without .json extension)
            seed: Overrides the scenario's rng_seed

        Raises:
            FileNotFoundError: If the scenario file doesn't exist
            ValueError: If required fields are missing or a record is malformed
            json.JSONDecodeError: If the file is not valid JSON
        """
        scenario_path = self.scenarios_dir / f"{scenario_name}.json"

        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario '{scenario_name}' not found at {scenario_path}")

        data = json.loads(scenario_path.read_text())
        return self.build(data, seed=seed)

    def build(self, data: Dict[str, Any], seed: Optional[int] = None) -> Snapshot:
        """Build a Snapshot from already-parsed scenario data."""
        self._validate_scenario(data)

        game_data = dict(data["game"])
        if seed is not None:
            game_data["rng_seed"] = seed
        game_data.setdefault("rng_seed", Config.DEFAULT_SEED)

        try:
            game = GameState.model_validate(game_data)
            artists = [self._parse_artist(entry, game.week, signed=True) for entry in data["artists"]]
            artists += [self._parse_artist(entry, game.week, signed=False) for entry in data.get("prospects", [])]
            snapshot = Snapshot(
                game=game,
                artists=artists,
                projects=[Project.model_validate(p) for p in data.get("projects", [])],
                songs=[Song.model_validate(s) for s in data.get("songs", [])],
                releases=[Release.model_validate(r) for r in data.get("releases", [])],
                tours=[Tour.model_validate(t) for t in data.get("tours", [])],
            )
        except PydanticValidationError as exc:
            raise ValueError(f"Scenario '{data['name']}' is malformed: {exc}") from exc

        self._check_references(snapshot)
        return snapshot

    def _validate_scenario(self, data: Dict[str, Any]) -> None:
        missing = [field for field in self.REQUIRED_FIELDS if field not in data]
        if missing:
            raise ValueError(f"Scenario missing required fields: {missing}")

        if not isinstance(data["game"], dict) or "money" not in data["game"]:
            raise ValueError("Scenario 'game' block must include 'money'")

        ids = [entry.get("id") for entry in (*data["artists"], *data.get("prospects", []))]
        if any(artist_id is None for artist_id in ids):
            raise ValueError("Every artist entry needs an 'id'")
        if len(ids) != len(set(ids)):
            raise ValueError("Artist ids must be unique across artists and prospects")

    def _parse_artist(self, entry: Dict[str, Any], week: int, *, signed: bool) -> Artist:
        payload = dict(entry)
        payload.setdefault("signed", signed)
        if payload["signed"]:
            payload.setdefault("signed_week", week)
        artist = Artist.model_validate(payload)
        if "archetype" not in entry:
            artist.archetype = derive_archetype(artist, self.config)
        return artist

    def _check_references(self, snapshot: Snapshot) -> None:
        artist_ids = {a.id for a in snapshot.artists}
        project_ids = {p.id for p in snapshot.projects}
        song_ids = {s.id for s in snapshot.songs}
        problems: List[str] = []
        for project in snapshot.projects:
            if project.artist_id not in artist_ids:
                problems.append(f"project '{project.id}' references unknown artist '{project.artist_id}'")
        for song in snapshot.songs:
            if song.project_id not in project_ids:
                problems.append(f"song '{song.id}' references unknown project '{song.project_id}'")
        for release in snapshot.releases:
            unknown = [sid for sid in release.song_ids if sid not in song_ids]
            if unknown:
                problems.append(f"release '{release.id}' references unknown songs {unknown}")
        for tour in snapshot.tours:
            if tour.artist_id not in artist_ids:
                problems.append(f"tour '{tour.id}' references unknown artist '{tour.artist_id}'")
        if problems:
            raise ValueError("Scenario references are inconsistent:\n  - " + "\n  - ".join(problems))

    def list_scenarios(self) -> List[str]:
        """List all available scenario names (without .json extension)."""
        if not self.scenarios_dir.exists():
            return []

        return sorted(f.stem for f in self.scenarios_dir.glob("*.json") if not f.name.startswith("_"))

    def get_scenario_info(self, scenario_name: str) -> Dict[str, Any]:
        """Get scenario metadata without building the snapshot."""
        scenario_path = self.scenarios_dir / f"{scenario_name}.json"
        data = json.loads(scenario_path.read_text())

        return {
            "name": data.get("name", scenario_name),
            "description": data.get("description", "No description"),
            "num_artists": len(data.get("artists", [])),
            "recommended_weeks": data.get("recommended_weeks", Config.DEFAULT_WEEKS),
        }


def load_scenario(scenario_name: str, seed: Optional[int] = None) -> Snapshot:
    """Convenience function to load a scenario from the default directory."""
    loader = ScenarioLoader()
    return loader.load(scenario_name, seed=seed)
