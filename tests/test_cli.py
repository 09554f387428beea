"""Tests for cfg_reloader CLI."""

import json
import os
import signal
import threading
import time
from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from cfg_reloader.cli import main


class TestHelp:
    def test_main_help(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "merge" in result.output
        assert "watch" in result.output

    def test_watch_help_lists_options(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["watch", "--help"])
        assert result.exit_code == 0
        assert "--key" in result.output
        assert "--batch" in result.output
        assert "--settings" in result.output

    def test_verbose_flag_accepted(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["-v", "merge", "--help"])
        assert result.exit_code == 0


class TestMergeCommand:
    def test_prints_merged_document(self, tmp_path: Path) -> None:
        cfg1 = tmp_path / "cfg1.json"
        cfg2 = tmp_path / "cfg2.json"
        cfg1.write_text(json.dumps({"x": 1, "z": [3, 4]}))
        cfg2.write_text(json.dumps({"x": 2, "z": [5, 6]}))

        runner = CliRunner()
        result = runner.invoke(main, ["merge", str(cfg1), str(cfg2)])

        assert result.exit_code == 0
        assert json.loads(result.output) == {"x": 2, "z": [3, 4, 5, 6]}

    def test_missing_files_are_skipped(self, tmp_path: Path) -> None:
        cfg1 = tmp_path / "cfg1.json"
        cfg1.write_text(json.dumps({"x": 1}))

        runner = CliRunner()
        result = runner.invoke(main, ["merge", str(cfg1), str(tmp_path / "absent.json")])

        assert result.exit_code == 0
        assert json.loads(result.output) == {"x": 1}

    def test_invalid_file_exits_with_error(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("[1, 2]")

        runner = CliRunner()
        result = runner.invoke(main, ["merge", str(bad)])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_requires_files(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["merge"])
        assert result.exit_code != 0


class TestWatchCommandErrors:
    def test_no_files_exits_with_error(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["watch"])
        assert result.exit_code == 1
        assert "at least one config file" in result.output

    def test_no_keys_found_exits_with_error(self, tmp_path: Path) -> None:
        cfg1 = tmp_path / "cfg1.json"
        cfg1.write_text("{}")

        runner = CliRunner()
        result = runner.invoke(main, ["watch", str(cfg1)])

        assert result.exit_code == 1
        assert "no keys found" in result.output

    def test_invalid_config_exits_with_error(self, tmp_path: Path) -> None:
        cfg1 = tmp_path / "cfg1.json"
        cfg1.write_text("{broken")

        runner = CliRunner()
        result = runner.invoke(main, ["watch", str(cfg1), "--key", "x"])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_bad_settings_file_exits_with_error(self, tmp_path: Path) -> None:
        settings_file = tmp_path / "reloader.json"
        settings_file.write_text(json.dumps({"files": []}))

        runner = CliRunner()
        result = runner.invoke(main, ["watch", "--settings", str(settings_file)])

        assert result.exit_code == 1
        assert "files" in result.output

    def test_mistyped_settings_exit_with_error(self, tmp_path: Path) -> None:
        settings_file = tmp_path / "reloader.json"
        settings_file.write_text(json.dumps({"files": ["a.json"], "batch_seconds": None}))

        runner = CliRunner()
        result = runner.invoke(main, ["watch", "--settings", str(settings_file)])

        assert result.exit_code == 1
        assert "batch_seconds" in result.output
        assert "Traceback" not in result.output


@pytest.fixture
def restore_signal_handlers() -> Iterator[None]:
    """Put back the SIGINT/SIGTERM handlers replaced by ``watch``."""
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in saved.items():
            signal.signal(sig, handler)


class TestWatchCommand:
    @pytest.mark.usefixtures("restore_signal_handlers")
    def test_prints_changes_until_interrupted(self, tmp_path: Path) -> None:
        cfg1 = tmp_path / "cfg1.json"
        cfg1.write_text(json.dumps({"x": 1}))

        def edit_then_interrupt() -> None:
            time.sleep(0.5)
            cfg1.write_text(json.dumps({"x": 2}))
            time.sleep(1.5)
            os.kill(os.getpid(), signal.SIGINT)

        editor = threading.Thread(target=edit_then_interrupt, daemon=True)
        runner = CliRunner()
        editor.start()
        result = runner.invoke(main, ["watch", str(cfg1), "--batch", "0.2"])
        editor.join(timeout=5.0)

        assert result.exit_code == 0, result.output
        assert "x = 1" in result.output
        assert "x = 2" in result.output
        assert "reloaded: modified config file" in result.output
        assert "Stopped." in result.output
        assert result.output.index("x = 1") < result.output.index("x = 2")

    @pytest.mark.usefixtures("restore_signal_handlers")
    def test_reports_removed_key(self, tmp_path: Path) -> None:
        cfg1 = tmp_path / "cfg1.json"
        cfg1.write_text(json.dumps({"x": 1, "y": "keep"}))

        def edit_then_terminate() -> None:
            time.sleep(0.5)
            cfg1.write_text(json.dumps({"y": "keep"}))
            time.sleep(1.5)
            os.kill(os.getpid(), signal.SIGTERM)

        editor = threading.Thread(target=edit_then_terminate, daemon=True)
        runner = CliRunner()
        editor.start()
        result = runner.invoke(main, ["watch", str(cfg1), "-k", "x", "--batch", "0.2"])
        editor.join(timeout=5.0)

        assert result.exit_code == 0, result.output
        assert "x = 1" in result.output
        assert "x removed" in result.output
        assert "Stopped." in result.output
