"""Tests for the JSON scenario loader."""

import json

import pytest

from labelsim.scenario import ScenarioLoader, load_scenario
from labelsim.schemas import Archetype


def write_scenario(tmp_path, name, data):
    (tmp_path / f"{name}.json").write_text(json.dumps(data), "utf-8")
    return ScenarioLoader(tmp_path)


def minimal(**overrides):
    data = {
        "name": "Tiny",
        "description": "One artist",
        "game": {"money": 1000},
        "artists": [{"id": "a1", "name": "A One", "creativity": 95, "talent": 90, "work_ethic": 10}],
    }
    data.update(overrides)
    return data


def test_bundled_scenario_loads():
    snapshot = load_scenario("garage_label")

    assert snapshot.game.money == 90000
    assert snapshot.game.rng_seed == 7
    assert [a.id for a in snapshot.signed_artists()] == ["nova", "ghost-orchard"]
    prospect = snapshot.get_artist("rhea")
    assert prospect is not None and not prospect.signed
    assert snapshot.get_artist("nova").signed_week == 0


def test_seed_argument_overrides_scenario_seed():
    assert load_scenario("garage_label", seed=123).game.rng_seed == 123


def test_bundled_scenarios_are_listed():
    loader = ScenarioLoader()
    assert {"garage_label", "empty_roster"} <= set(loader.list_scenarios())
    info = loader.get_scenario_info("garage_label")
    assert info["num_artists"] == 2
    assert info["recommended_weeks"] == 24


def test_archetype_is_derived_from_traits(tmp_path):
    snapshot = write_scenario(tmp_path, "tiny", minimal()).load("tiny")
    assert snapshot.get_artist("a1").archetype == Archetype.VISIONARY


def test_missing_required_fields_raise(tmp_path):
    data = minimal()
    del data["artists"]
    with pytest.raises(ValueError, match="artists"):
        write_scenario(tmp_path, "broken", data).load("broken")


def test_money_is_required(tmp_path):
    with pytest.raises(ValueError, match="money"):
        write_scenario(tmp_path, "broke", minimal(game={"reputation": 3})).load("broke")


def test_duplicate_artist_ids_raise(tmp_path):
    data = minimal(prospects=[{"id": "a1", "name": "Again"}])
    with pytest.raises(ValueError, match="unique"):
        write_scenario(tmp_path, "dupes", data).load("dupes")


def test_out_of_range_traits_raise(tmp_path):
    data = minimal(artists=[{"id": "a1", "name": "A One", "talent": 140}])
    with pytest.raises(ValueError, match="malformed"):
        write_scenario(tmp_path, "wild", data).load("wild")


def test_dangling_references_raise(tmp_path):
    data = minimal(
        projects=[
            {"id": "p1", "title": "Ghost", "artist_id": "nobody", "created_week": 0, "due_week": 4}
        ]
    )
    with pytest.raises(ValueError, match="unknown artist"):
        write_scenario(tmp_path, "dangling", data).load("dangling")


def test_unknown_scenario_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ScenarioLoader(tmp_path).load("nowhere")
