"""Unit tests for the command-line entry point"""

import json

import pytest

from nl2cli import cli
from nl2cli.pipeline import build_pipeline


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LEARNING_STORE_PATH", str(tmp_path / "corrections.jsonl"))
    monkeypatch.setenv("KNOWLEDGE_PATH", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("EMBEDDING_BACKEND", "hashing")
    monkeypatch.setenv("MAX_RETRIES", "0")
    return tmp_path


@pytest.fixture
def scripted_pipeline(monkeypatch, make_backend):
    """Route the CLI's pipeline through a scripted backend"""
    backend = make_backend(["aws s3 ls"])

    def _build(app_config, **kwargs):
        return build_pipeline(app_config, backend=backend)

    monkeypatch.setattr(cli, "build_pipeline", _build)
    return backend


def test_translate_prints_commands(cli_env, scripted_pipeline, capsys):
    exit_code = cli.main(["translate", "list my s3 buckets", "-p", "aws"])

    assert exit_code == 0
    assert capsys.readouterr().out == "aws s3 ls\n"
    assert scripted_pipeline.closed is True


def test_translate_json_output_and_failures(cli_env, scripted_pipeline, capsys):
    queries = cli_env / "queries.txt"
    queries.write_text("list my s3 buckets\n\nlist vms on gcp\n", encoding="utf-8")
    scripted_pipeline.responses = ["rm -rf /"]

    exit_code = cli.main(["translate", "--file", str(queries), "--json"])

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert exit_code == 1
    assert [line["query"] for line in lines] == ["list my s3 buckets", "list vms on gcp"]
    assert all("forbidden pattern" in line["error"] for line in lines)
    assert all(line["attempts"] == 1 for line in lines)


def test_translate_without_queries_is_usage_error(cli_env, scripted_pipeline):
    assert cli.main(["translate"]) == 2
    assert scripted_pipeline.calls == 0


def test_learn_then_translate_uses_correction(cli_env, scripted_pipeline, capsys):
    assert cli.main(["learn", "list my databases", "tool db list", "--error", "bad argument"]) == 0
    record = json.loads(capsys.readouterr().out)

    assert record["corrected_command"] == "tool db list"
    assert record["correction_type"] == "parameter_error"

    assert cli.main(["translate", "List my databases"]) == 0
    assert capsys.readouterr().out == "tool db list\n"
    assert scripted_pipeline.calls == 0


def test_learn_rejects_empty_command(cli_env):
    assert cli.main(["learn", "list my databases", "  "]) == 2


def test_stats(cli_env, capsys):
    cli.main(["learn", "list my databases", "tool db list"])
    capsys.readouterr()

    assert cli.main(["stats"]) == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["total_corrections"] == 1
    assert stats["by_type"] == {"command_fix": 1}


def test_missing_query_file(cli_env):
    assert cli.main(["translate", "--file", "nope.txt"]) == 1
