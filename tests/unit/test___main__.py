"""Unit tests for noticecal.__main__.

Tests cover argument parsing, the parse and expand sub-commands, exit codes
and configuration loading from the working directory.
"""

from __future__ import annotations

import json

import pytest

import noticecal.__main__ as cli
from noticecal.__main__ import EXIT_INVALID, EXIT_NOT_RECOGNIZED, EXIT_OK, _create_parser, main, run

EVERY_OTHER_DAY = '{"frequency": "daily", "interval": 2, "endType": "count", "count": 3}'


@pytest.mark.unit
@pytest.mark.fast
class TestCreateParser:
    """Tests for argument parser creation."""

    def test_create_parser_when_called_then_prog_is_noticecal(self) -> None:
        assert _create_parser().prog == "noticecal"

    def test_create_parser_when_no_command_then_exits(self) -> None:
        with pytest.raises(SystemExit):
            _create_parser().parse_args([])

    def test_create_parser_when_rule_and_text_both_given_then_exits(self) -> None:
        with pytest.raises(SystemExit):
            _create_parser().parse_args(
                ["expand", "--start", "2024-03-04T14:00", "--end", "2024-03-04T15:00", "--rule", "{}", "--text", "每天"]
            )


@pytest.mark.unit
@pytest.mark.usefixtures("isolated_cwd", "restore_log_levels")
class TestParseCommand:
    """Tests for the parse sub-command."""

    def test_parse_when_recognized_then_prints_stored_rule(self, capsys) -> None:
        code = run(["parse", "每周二和周四"])

        assert code == EXIT_OK
        assert json.loads(capsys.readouterr().out) == {
            "frequency": "custom",
            "interval": 1,
            "daysOfWeek": [2, 4],
            "endType": "never",
        }

    def test_parse_when_reference_given_then_used_for_yearless_date(self, capsys) -> None:
        code = run(["parse", "每天，直到3月15日", "--reference", "2025-01-01"])

        assert code == EXIT_OK
        assert json.loads(capsys.readouterr().out)["endDate"] == "2025-03-15T23:59:59"

    def test_parse_when_not_recognized_then_exit_one(self, capsys) -> None:
        code = run(["parse", "明天下午3点开会"])

        assert code == EXIT_NOT_RECOGNIZED
        assert "not recognized" in capsys.readouterr().err


@pytest.mark.unit
@pytest.mark.usefixtures("isolated_cwd", "restore_log_levels")
class TestExpandCommand:
    """Tests for the expand sub-command."""

    def test_expand_when_rule_json_then_lists_occurrences(self, capsys) -> None:
        code = run(
            ["expand", "--start", "2024-03-04T14:00", "--end", "2024-03-04T15:00", "--rule", EVERY_OTHER_DAY]
        )

        out = capsys.readouterr().out
        assert code == EXIT_OK
        assert out.splitlines()[0] == "# every 2 days, 3 times"
        assert "2024-03-06 14:00 - 2024-03-06 15:00" in out
        assert len(out.splitlines()) == 4

    def test_expand_when_text_then_parsed_first(self, capsys) -> None:
        code = run(
            [
                "expand",
                "--start",
                "2024-01-31T09:00",
                "--end",
                "2024-01-31T10:00",
                "--text",
                "每月31号，共3次",
            ]
        )

        out = capsys.readouterr().out
        assert code == EXIT_OK
        assert "2024-02-29 09:00" in out
        assert "2024-03-31 09:00" in out

    def test_expand_when_capped_then_warns_on_stderr(self, capsys) -> None:
        code = run(
            [
                "expand",
                "--start",
                "2024-03-04T14:00",
                "--end",
                "2024-03-04T15:00",
                "--rule",
                '{"frequency": "daily"}',
                "--max-instances",
                "2",
            ]
        )

        captured = capsys.readouterr()
        assert code == EXIT_OK
        assert "Series capped at 2 occurrences." in captured.err
        assert len(captured.out.splitlines()) == 3

    def test_expand_when_called_then_series_generated_once(self, monkeypatch, capsys) -> None:
        calls = []
        original = cli.iter_occurrences

        def counting(*args, **kwargs):
            calls.append(args)
            return original(*args, **kwargs)

        monkeypatch.setattr(cli, "iter_occurrences", counting)

        code = run(
            [
                "expand",
                "--start",
                "2024-03-04T14:00",
                "--end",
                "2024-03-04T15:00",
                "--rule",
                '{"frequency": "daily"}',
                "--max-instances",
                "3",
            ]
        )

        assert code == EXIT_OK
        assert len(calls) == 1
        assert "Series capped at 3 occurrences." in capsys.readouterr().err

    def test_expand_when_config_file_sets_cap_then_used(self, isolated_cwd, capsys) -> None:
        (isolated_cwd / "noticecal.yaml").write_text("max_instances: 4\n", encoding="utf-8")

        run(["expand", "--start", "2024-03-04T14:00", "--end", "2024-03-04T15:00", "--rule", '{"frequency": "weekly"}'])

        assert "Series capped at 4 occurrences." in capsys.readouterr().err

    @pytest.mark.parametrize(
        "extra",
        [
            ["--rule", "not json"],
            ["--rule", '{"frequency": "custom"}'],
            ["--rule", EVERY_OTHER_DAY, "--max-instances", "0"],
            ["--rule", EVERY_OTHER_DAY, "--timezone", "Nowhere/City"],
            ["--rule", '{"frequency": "daily", "endType": "date", "endDate": "2024-03-01T00:00:00"}'],
        ],
    )
    def test_expand_when_input_invalid_then_exit_two(self, extra, capsys) -> None:
        code = run(["expand", "--start", "2024-03-04T14:00", "--end", "2024-03-04T15:00", *extra])

        assert code == EXIT_INVALID
        assert capsys.readouterr().err

    def test_expand_when_end_before_start_then_exit_two(self, capsys) -> None:
        code = run(["expand", "--start", "2024-03-04T15:00", "--end", "2024-03-04T14:00", "--rule", EVERY_OTHER_DAY])

        assert code == EXIT_INVALID

    def test_expand_when_text_not_recognized_then_exit_one(self, capsys) -> None:
        code = run(["expand", "--start", "2024-03-04T14:00", "--end", "2024-03-04T15:00", "--text", "随便"])

        assert code == EXIT_NOT_RECOGNIZED


@pytest.mark.unit
@pytest.mark.usefixtures("isolated_cwd", "restore_log_levels")
class TestMain:
    """Tests for the console entry point."""

    def test_run_when_config_file_broken_then_exit_two(self, isolated_cwd, capsys) -> None:
        bad = isolated_cwd / "bad.yaml"
        bad.write_text("- just\n- a list\n", encoding="utf-8")

        assert run(["--config", str(bad), "parse", "每天"]) == EXIT_INVALID
        assert "Invalid configuration" in capsys.readouterr().err

    def test_main_when_parse_succeeds_then_exits_zero(self, monkeypatch) -> None:
        monkeypatch.setattr("sys.argv", ["noticecal", "parse", "every day"])

        with pytest.raises(SystemExit) as excinfo:
            main()

        assert excinfo.value.code == 0
