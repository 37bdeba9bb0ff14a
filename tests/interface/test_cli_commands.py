"""Tests for CLI commands: analytics, review queue, backup/restore, reset and config."""

import asyncio
import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from clinrev.application.study_data import StudyDataRepository
from clinrev.domain.clock import now_ms
from clinrev.domain.errors import StorageError
from clinrev.infrastructure.persistence.json_store import JsonFileKeyValueStore
from clinrev.interface.cli import app, main

runner = CliRunner()


@pytest.fixture
def data_file(mock_home):
    return mock_home / "data.json"


@pytest.fixture
def seed(data_file):
    """Write sessions, library questions and bookmarks into the data file."""

    def _seed(sessions=(), questions=(), bookmarks=()):
        async def run():
            repo = StudyDataRepository(JsonFileKeyValueStore(data_file))
            for session in sessions:
                await repo.save_session(session)
            await repo.add_to_library(questions)
            for question in bookmarks:
                await repo.toggle_bookmark(question, now_ms())

        asyncio.run(run())

    return _seed


def invoke(data_file, *args, **kwargs):
    return runner.invoke(app, ["--data-file", str(data_file), *args], **kwargs)


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "clinrev" in result.output
    assert "topics" in result.output
    assert "import" in result.output


# --- Analytics ---


def test_stats_without_history(data_file):
    result = invoke(data_file, "stats")
    assert result.exit_code == 0
    assert "No sessions recorded yet." in result.output


def test_stats_with_history(data_file, seed, make_session):
    seed(sessions=[make_session([True] * 7 + [False] * 3, time_ms=600_000)])

    result = invoke(data_file, "stats")

    assert result.exit_code == 0
    assert "Questions: 10  Correct: 7  (70%)" in result.output
    assert "Avg/question: 60s" in result.output


def test_stats_json(data_file, seed, make_session):
    seed(sessions=[make_session([True, False])])

    result = invoke(data_file, "stats", "--json")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["session_count"] == 1
    assert data["stats"]["avg_accuracy"] == 50


def test_topics_json_ranked_by_weakness(data_file, seed, make_session, make_question):
    seed(
        sessions=[make_session([True, False, False, True, True, True])],
        questions=[
            make_question("q0", tags=["Sepsis"]),
            make_question("q1", tags=["Asthma"]),
            make_question("q2", tags=["Asthma"]),
            make_question("q3", tags=["Sepsis"]),
            make_question("q4", tags=["Sepsis"]),
            make_question("q5", tags=["Gout"]),
        ],
    )

    result = invoke(data_file, "topics", "--json")

    assert result.exit_code == 0
    names = [t["name"] for t in json.loads(result.stdout)]
    # Asthma (0%, 2 seen) and Gout (1 seen) are below the sample threshold.
    assert names == ["Sepsis", "Asthma", "Gout"]


def test_topics_filter(data_file, seed, make_session, make_question):
    seed(
        sessions=[make_session([True, False])],
        questions=[make_question("q0", tags=["Sepsis"]), make_question("q1", tags=["Asthma"])],
    )

    result = invoke(data_file, "topics", "-f", "ASTH")

    assert result.exit_code == 0
    assert "Asthma" in result.output
    assert "Sepsis" not in result.output


def test_topics_unknown_sort(data_file):
    result = invoke(data_file, "topics", "--sort", "loudest")
    assert result.exit_code == 2
    assert "Unknown sort" in result.output


def test_topics_without_data(data_file):
    result = invoke(data_file, "topics")
    assert result.exit_code == 0
    assert "No topic data yet." in result.output


def test_concepts(data_file, seed, make_session, make_question):
    seed(
        sessions=[make_session([True, False])],
        questions=[
            make_question("q0", concepts=["Fluids"]),
            make_question("q1", concepts=["Fluids", "Lactate"]),
        ],
    )

    result = invoke(data_file, "concepts", "--json")

    assert result.exit_code == 0
    rollup = json.loads(result.stdout)
    assert [(c["name"], c["total"]) for c in rollup] == [("Fluids", 2), ("Lactate", 1)]


def test_timeline(data_file, seed, make_session, days_ago):
    seed(
        sessions=[
            make_session([True, False], timestamp=days_ago(1), time_ms=50_000),
            make_session([True] * 4, timestamp=days_ago(3), time_ms=40_000),
        ]
    )

    result = invoke(data_file, "timeline")

    assert result.exit_code == 0
    lines = result.output.strip().splitlines()
    assert lines[0].split() == ["S1", "2024-06-12", "100%", "10s/q"]
    assert lines[1].split() == ["S2", "2024-06-14", "50%", "25s/q"]


def test_timeline_without_history(data_file):
    assert "No sessions recorded yet." in invoke(data_file, "timeline").output


def test_heatmap(data_file, seed, make_session):
    seed(sessions=[make_session([True] * 4, timestamp=now_ms())])

    result = invoke(data_file, "heatmap")

    assert result.exit_code == 0
    assert "active days: 1  busiest: 4" in result.output
    assert result.output.rstrip().endswith("█")

    data = json.loads(invoke(data_file, "heatmap", "--json").stdout)
    assert data["max_daily_count"] == 4
    assert data["days"][-1]["count"] == 4


def test_report(data_file, seed, make_session):
    seed(sessions=[make_session([True])])

    result = invoke(data_file, "report")

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["lifetime"]["session_count"] == 1
    assert len(report["heatmap"]["days"]) > 80


# --- Spaced repetition ---


def test_due_lists_bookmarks(data_file, seed, make_question):
    seed(bookmarks=[make_question("q1")])

    result = invoke(data_file, "due")

    assert result.exit_code == 0
    assert "Due: 1" in result.output
    assert "[vignette] q1" in result.output


def test_due_json_and_empty(data_file, seed, make_question):
    assert "Nothing due." in invoke(data_file, "due").output

    seed(bookmarks=[make_question("q1")])
    items = json.loads(invoke(data_file, "due", "--json").stdout)
    assert items[0]["type"] == "vignette"
    assert items[0]["card"]["card_id"] == "q1"


def test_rate_card(data_file, seed, make_question):
    seed(bookmarks=[make_question("q1")])

    result = invoke(data_file, "rate", "q1", "Good")

    assert result.exit_code == 0
    assert "next review in 1d" in result.output
    assert "Nothing due." in invoke(data_file, "due").output


def test_rate_unknown_rating(data_file):
    result = invoke(data_file, "rate", "q1", "meh")
    assert result.exit_code == 2
    assert "Unknown rating" in result.output


# --- Backup ---


def test_export_then_import(mock_home, seed, data_file, make_session, make_question):
    seed(sessions=[make_session([True, True])], bookmarks=[make_question("q1")])
    backup = mock_home / "backup.json"

    result = invoke(data_file, "export", str(backup))
    assert result.exit_code == 0
    assert "Backup written to" in result.output

    other = mock_home / "other.json"
    result = invoke(other, "import", str(backup))
    assert result.exit_code == 0
    assert "Import successful." in result.output

    exported = json.loads(invoke(other, "export").stdout)
    assert len(exported["history"]) == 1
    assert exported["srsStates"]["q1"]["cardId"] == "q1"


def test_import_invalid_backup(mock_home, data_file):
    bad = mock_home / "bad.json"
    bad.write_text("[1, 2, 3]")

    result = invoke(data_file, "import", str(bad))

    assert result.exit_code == 1
    assert "Import failed" in result.output


def test_import_undecodable_backup(mock_home, data_file, seed, make_session):
    seed(sessions=[make_session([True])])
    bad = mock_home / "bad.json"
    bad.write_bytes(b'{"history": "\xff"}')

    result = invoke(data_file, "import", str(bad))

    assert result.exit_code == 1
    assert "Import failed" in result.output
    assert "Questions: 1" in invoke(data_file, "stats").output


def test_import_missing_file(mock_home, data_file):
    result = invoke(data_file, "import", str(mock_home / "missing.json"))
    assert result.exit_code == 1
    assert "Could not read" in result.output


# --- Reset ---


def test_reset_force(data_file, seed, make_session):
    seed(sessions=[make_session([True])])

    result = invoke(data_file, "reset", "--force")

    assert result.exit_code == 0
    assert "All data cleared." in result.output
    assert "No sessions recorded yet." in invoke(data_file, "stats").output


def test_reset_declined_keeps_data(data_file, seed, make_session):
    seed(sessions=[make_session([True])])

    result = invoke(data_file, "reset", input="n\n")

    assert result.exit_code == 1
    assert "Questions: 1" in invoke(data_file, "stats").output


# --- Config ---


def test_config_show_reads_environment(mock_home, monkeypatch):
    monkeypatch.setenv("CLINREV_TOPIC_LIMIT", "5")

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["topic_limit"] == 5
    assert data["data_file"].startswith(str(mock_home))


def test_config_show_honours_data_file_override(mock_home, data_file):
    result = invoke(data_file, "config", "show")

    assert result.exit_code == 0
    assert json.loads(result.stdout)["data_file"] == str(data_file)


# --- Error mapping ---


def test_main_maps_domain_errors_to_exit_code():
    with patch("clinrev.interface.cli.app", side_effect=StorageError("disk gone")):
        with pytest.raises(SystemExit) as exc:
            main()
    assert exc.value.code == 1
