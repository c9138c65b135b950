"""Tests for the parallax command line."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from parallax import __version__
from parallax.cli import main
from parallax.config import prompts_intelligence


class TestInfoCommands:
    """lenses / prompt / version."""

    def test_lenses(self, capsys) -> None:
        main(["lenses", "Family"])
        out = capsys.readouterr().out
        lines = out.splitlines()
        assert "(family)" in lines[0]
        assert [line.split()[0] for line in lines[1:]] == [
            "nvc", "gottman", "narrative", "dramaTriangle", "attachment", "power", "restorative",
        ]

    def test_prompt_with_goals(self, capsys) -> None:
        main(["prompt", "intimate", "--goal", "Split chores", "--goal", "Plan a date", "--summary", "Both tired."])
        captured = capsys.readouterr()
        assert captured.out.startswith(prompts_intelligence.PREAMBLE)
        assert "1. Split chores\n2. Plan a date" in captured.out
        assert "Both tired." in captured.out
        assert "max_tokens=" in captured.err

    def test_version(self, capsys) -> None:
        main(["version"])
        assert capsys.readouterr().out.strip() == f"parallax {__version__}"

    def test_unknown_mode_rejected(self, capsys) -> None:
        with pytest.raises(SystemExit) as info:
            main(["lenses", "romantic"])
        assert info.value.code == 2
        assert "romantic" in capsys.readouterr().err

    def test_no_command(self, capsys) -> None:
        with pytest.raises(SystemExit) as info:
            main([])
        assert info.value.code == 1


class TestParseCommand:
    """parse reads a reply from a file or stdin."""

    def test_parse_file(self, tmp_path: Path, capsys, legacy) -> None:
        source = tmp_path / "reply.txt"
        source.write_text("```json\n" + json.dumps(legacy(emotionalTemperature=0.9)) + "\n```", encoding="utf-8")
        main(["parse", str(source), "--mode", "professional-peer"])
        parsed = json.loads(capsys.readouterr().out)
        assert parsed["meta"]["contextMode"] == "professional_peer"
        assert parsed["emotionalTemperature"] == 0.9

    def test_parse_stdin(self, capsys, legacy) -> None:
        with patch("sys.stdin") as stdin:
            stdin.read.return_value = json.dumps(legacy())
            main(["parse", "-"])
        assert json.loads(capsys.readouterr().out)["feeling"] == "frustrated"

    def test_missing_file(self, tmp_path: Path, capsys) -> None:
        with pytest.raises(SystemExit) as info:
            main(["parse", str(tmp_path / "missing.txt")])
        assert info.value.code == 1
        assert "No such file" in capsys.readouterr().out

    def test_unparseable_reply(self, tmp_path: Path, capsys) -> None:
        source = tmp_path / "reply.txt"
        source.write_text("I'm sorry, I can't analyze that.", encoding="utf-8")
        with pytest.raises(SystemExit) as info:
            main(["parse", str(source)])
        assert info.value.code == 1
        assert "Analysis unavailable" in capsys.readouterr().out


class TestSessionCommand:
    """An in-person session driven from scripted input."""

    def test_in_person_session(self, capsys, backend) -> None:
        backend.queue(
            {"action": "continue", "message": "Welcome. Who would like to start?"},
            {
                "action": "synthesize",
                "message": "Let's work on sharing chores.",
                "goals": ["Share chores"],
                "names": {"a": "Alex"},
            },
            {"temperatureArc": "Calm throughout.", "overallInsight": "Both want a fair home."},
        )
        inputs = iter(["a: I'm Alex, we keep arguing about chores.", "/end"])

        with patch("parallax.cli._configure_logging"), \
                patch("parallax.services.completion.CompletionClient", return_value=backend), \
                patch("builtins.input", side_effect=lambda prompt="": next(inputs)):
            main(["session", "--mode", "intimate", "--in-person"])

        out = capsys.readouterr().out
        assert "Welcome. Who would like to start?" in out
        assert "Let's work on sharing chores." in out
        assert "Both want a fair home." in out
        assert len(backend.calls) == 3

    def test_active_messages_are_analyzed(self, capsys, backend, legacy) -> None:
        backend.queue(
            {"action": "continue", "message": "Welcome. Who would like to start?"},
            {"action": "synthesize", "message": "Let's talk about chores.", "goals": ["Share chores"]},
            legacy(emotionalTemperature=0.9),
            {"temperatureArc": "Hot, then calmer.", "overallInsight": "Both feel overloaded."},
        )
        inputs = iter(["a: We keep arguing about chores.", "b: You never help!", "/end"])

        with patch("parallax.cli._configure_logging"), \
                patch("parallax.services.completion.CompletionClient", return_value=backend), \
                patch("parallax.services.mediation.MediationService.forget") as forget, \
                patch("builtins.input", side_effect=lambda prompt="": next(inputs)):
            main(["session", "--mode", "intimate", "--in-person"])

        out = capsys.readouterr().out
        assert "temperature 0.90 (hot)" in out
        assert "Both feel overloaded." in out
        assert len(backend.calls) == 4
        forget.assert_called_once()
