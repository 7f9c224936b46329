"""Tests for CLI module."""
from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest


def test_parse_args_builds_runner_options(sandbox: Path):
    from foreman.cli import parse_args

    options = parse_args(
        [
            "--provider",
            "echo",
            "--max-steps",
            "3",
            "--context",
            "business_id=biz-1",
            "--context",
            "user_id=u=2",
            "What",
            "is",
            "due?",
        ]
    )
    assert options.prompt == "What is due?"
    assert options.provider == "echo"
    assert options.max_steps == 3
    assert options.context == {"business_id": "biz-1", "user_id": "u=2"}
    assert options.enable_file_logs is True


def test_parse_args_reads_prompt_files(sandbox: Path):
    from foreman.cli import parse_args

    (sandbox / "directive.txt").write_text("You only answer in French.")
    (sandbox / "extra.txt").write_text("Amounts are in EUR.")
    options = parse_args(["--system", "directive.txt", "--instructions", "extra.txt", "--quiet", "--no-log-json", "hi"])
    assert options.system_prompt == "You only answer in French."
    assert options.custom_instructions == "Amounts are in EUR."
    assert options.enable_human_logs is False
    assert options.enable_file_logs is False
    assert options.log_json_path is None


def test_parse_args_requires_prompt(sandbox: Path):
    from foreman.cli import parse_args

    with pytest.raises(SystemExit):
        parse_args([])


def test_parse_args_rejects_bad_context(sandbox: Path):
    from foreman.cli import parse_args

    with pytest.raises(SystemExit):
        parse_args(["--context", "no-equals-sign", "hi"])


def test_parse_context():
    import argparse

    from foreman.cli import parse_context

    assert parse_context(None) == {}
    assert parse_context([" a =1"]) == {"a": "1"}
    with pytest.raises(argparse.ArgumentTypeError):
        parse_context(["=1"])


@patch("foreman.cli.run_foreman")
def test_main_runs_prompt(mock_run, sandbox: Path):
    from foreman.cli import main

    mock_run.return_value = "Echo: hi"
    main(["--provider", "echo", "hi"])
    options = mock_run.call_args.args[0]
    assert options.prompt == "hi"


@patch("foreman.cli.run_foreman")
def test_main_exits_on_failure(mock_run, sandbox: Path):
    from foreman.cli import main

    mock_run.return_value = None
    with pytest.raises(SystemExit) as excinfo:
        main(["hi"])
    assert excinfo.value.code == 1
