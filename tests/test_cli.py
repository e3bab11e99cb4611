"""
Tests for the command line entry point
"""

import json
import sys

import pytest

import main
from progression.ranks import DEFAULT_RANK_TABLES
from progression.schemas import WorldSchema


WORLD = {
    "domains": [{"id": "strength", "name": "Strength", "sort_order": 1}],
    "divisions": [{"id": "open", "name": "Open"}],
    "athletes": [{"id": "a1", "gender": "male", "date_of_birth": "1995-04-02", "display_name": "Lee"}],
    "challenges": [
        {
            "id": f"c{i}",
            "name": f"Challenge {i}",
            "primary": {"domain_id": "strength", "percent": 100},
            "grades": [
                {"division_id": "open", "rank": "F", "target_value": 10},
                {"division_id": "open", "rank": "E", "target_value": 20},
            ],
        }
        for i in range(1, 4)
    ],
    "submissions": [
        {"athlete_id": "a1", "challenge_id": f"c{i}", "achieved_value": 25}
        for i in range(1, 4)
    ],
    "breakthroughs": [{"athlete_id": "a1", "domain_id": "strength"}],
}


@pytest.fixture
def world_file(tmp_path):
    path = tmp_path / "world.json"
    path.write_text(json.dumps(WORLD), encoding="utf-8")
    return str(path)


class TestBuildService:

    def test_seeds_repository(self):
        service = main.build_service(WorldSchema(**WORLD), DEFAULT_RANK_TABLES)
        assert service.repo.get_athlete("a1").display_name == "Lee"
        assert len(service.repo.list_challenges()) == 3


class TestCommands:

    def _run(self, monkeypatch, *args):
        monkeypatch.setattr(sys, "argv", ["main.py", *args])
        with pytest.raises(SystemExit) as exc_info:
            main.main()
        return exc_info.value.code

    def test_rules(self, monkeypatch, capsys):
        assert self._run(monkeypatch, "rules") == 0
        out = capsys.readouterr().out
        assert "F → E" in out
        assert "15" in out

    def test_grade(self, monkeypatch, capsys, world_file):
        code = self._run(monkeypatch, "grade", "--world", world_file, "--athlete", "a1", "--challenge", "c1", "--value", "12")
        assert code == 0
        assert "→ F (Foundation)" in capsys.readouterr().out

    def test_simulate(self, monkeypatch, capsys, world_file):
        assert self._run(monkeypatch, "simulate", "--world", world_file) == 0
        out = capsys.readouterr().out
        assert "F → E0" in out
        assert "Strength" in out

    def test_missing_world_file(self, monkeypatch, tmp_path):
        code = self._run(monkeypatch, "simulate", "--world", str(tmp_path / "none.json"))
        assert code == 2
