"""Tests for CLI interface."""

import json
import time
from datetime import datetime
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from conftest import make_file
from iclean.cli import app, parse_selection
from iclean.cleaner import delete_entry
from iclean.errors import DeletionError, DiskUsageQueryError
from iclean.models import DiskUsage, FileEntry, ScanOutcome, ScanProgress, ScanStatus
from iclean.session import ScanSession

runner = CliRunner()


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "iclean version" in result.stdout

    def test_version_short_flag(self):
        result = runner.invoke(app, ["-v"])
        assert result.exit_code == 0
        assert "iclean version" in result.stdout


class TestHelp:
    def test_help_flag(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "scan" in result.stdout
        assert "status" in result.stdout
        assert "empty-trash" in result.stdout

    def test_scan_help(self):
        result = runner.invoke(app, ["scan", "--help"])
        assert result.exit_code == 0
        assert "--threshold" in result.stdout
        assert "--delete" in result.stdout


class TestStatus:
    def test_status_command(self, tmp_path):
        result = runner.invoke(app, ["status", str(tmp_path)])
        assert result.exit_code == 0
        assert "Disk Usage" in result.stdout
        assert "Used" in result.stdout

    def test_status_failure(self):
        with patch("iclean.cli.get_disk_usage", side_effect=DiskUsageQueryError("no capacity")):
            result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "no capacity" in result.stdout


class TestScan:
    def test_scan_lists_large_files(self, tmp_path, isolated_config, no_system_protection):
        root = tmp_path / "Downloads"
        make_file(root / "big.iso", 5000)
        make_file(root / "small.txt", 10)
        make_file(root / ".hidden.bin", 5000)

        result = runner.invoke(app, ["scan", str(root), "--threshold", "1000"])

        assert result.exit_code == 0
        assert "big.iso" in result.stdout
        assert "small.txt" not in result.stdout
        assert ".hidden.bin" not in result.stdout
        assert "1 file," in result.stdout

    def test_scan_uses_configured_threshold(self, tmp_path, isolated_config, no_system_protection):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(json.dumps({"threshold_bytes": 100}))
        make_file(tmp_path / "data" / "medium.bin", 500)

        result = runner.invoke(app, ["scan", str(tmp_path / "data")])

        assert result.exit_code == 0
        assert "medium.bin" in result.stdout

    def test_scan_nothing_found(self, tmp_path, isolated_config, no_system_protection):
        result = runner.invoke(app, ["scan", str(tmp_path), "-t", "1000"])
        assert result.exit_code == 0
        assert "No large files found" in result.stdout

    def test_scan_protected_root(self, isolated_config):
        result = runner.invoke(app, ["scan", "/System/anything"])
        assert result.exit_code == 1
        assert "Protected path" in result.stdout

    def test_scan_missing_root(self, tmp_path, isolated_config, no_system_protection):
        result = runner.invoke(app, ["scan", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "Not a directory" in result.stdout

    def test_scan_and_delete(self, tmp_path, isolated_config, no_system_protection):
        root = tmp_path / "Downloads"
        big = make_file(root / "big.iso", 5000)
        other = make_file(root / "other.iso", 3000)

        result = runner.invoke(app, ["scan", str(root), "-t", "1000", "--delete", "--yes"])

        assert result.exit_code == 0
        assert "Deleted 2 of 2 files" in result.stdout
        assert not big.exists()
        assert not other.exists()

    def test_scan_delete_declined(self, tmp_path, isolated_config, no_system_protection):
        big = make_file(tmp_path / "big.iso", 5000)
        with patch("iclean.cli.confirm_action", return_value=False):
            result = runner.invoke(app, ["scan", str(tmp_path), "-t", "1000", "--delete"])
        assert result.exit_code == 0
        assert "Cancelled" in result.stdout
        assert big.exists()

    def test_scan_delete_partial_failure(self, tmp_path, isolated_config, no_system_protection):
        make_file(tmp_path / "a.iso", 5000)
        make_file(tmp_path / "b.iso", 3000)

        def flaky(entry, guard):
            if entry.name == "b.iso":
                raise DeletionError("Permission denied")
            return delete_entry(entry, guard)

        with patch("iclean.cleaner.delete_entry", side_effect=flaky):
            result = runner.invoke(app, ["scan", str(tmp_path), "-t", "1000", "--delete", "--yes"])

        assert result.exit_code == 1
        assert "Deleted 1 of 2 files; 1 failed" in result.stdout
        assert "Permission" in result.stdout

    def test_scan_pick_deletes_selected_rows(self, tmp_path, isolated_config, no_system_protection):
        first = make_file(tmp_path / "a.iso", 5000)
        second = make_file(tmp_path / "b.iso", 3000)
        third = make_file(tmp_path / "c.iso", 2000)

        result = runner.invoke(app, ["scan", str(tmp_path), "-t", "1000", "--pick", "1,3", "--yes"])

        assert result.exit_code == 0
        assert "Deleted 2 of 2 files" in result.stdout
        assert not first.exists()
        assert second.exists()
        assert not third.exists()

    def test_scan_pick_range(self, tmp_path, isolated_config, no_system_protection):
        first = make_file(tmp_path / "a.iso", 5000)
        second = make_file(tmp_path / "b.iso", 3000)
        third = make_file(tmp_path / "c.iso", 2000)

        result = runner.invoke(app, ["scan", str(tmp_path), "-t", "1000", "-p", "2-3", "-y"])

        assert result.exit_code == 0
        assert first.exists()
        assert not second.exists()
        assert not third.exists()

    def test_scan_pick_confirms_selected_count(self, tmp_path, isolated_config, no_system_protection):
        make_file(tmp_path / "a.iso", 5000)
        make_file(tmp_path / "b.iso", 3000)
        with patch("iclean.cli.confirm_action", return_value=False) as mock_confirm:
            result = runner.invoke(app, ["scan", str(tmp_path), "-t", "1000", "--pick", "2"])
        assert result.exit_code == 0
        assert "Delete 1 file?" in mock_confirm.call_args[0][0]

    def test_scan_pick_invalid_row(self, tmp_path, isolated_config, no_system_protection):
        big = make_file(tmp_path / "big.iso", 5000)
        result = runner.invoke(app, ["scan", str(tmp_path), "-t", "1000", "--pick", "4", "--yes"])
        assert result.exit_code == 1
        assert "Invalid selection" in result.stdout
        assert big.exists()


class TestParseSelection:
    def test_single_rows(self):
        assert parse_selection("1,3", 3) == [0, 2]

    def test_ranges_and_spaces(self):
        assert parse_selection(" 2-4 , 1 ", 5) == [1, 2, 3, 0]

    def test_duplicates_dropped(self):
        assert parse_selection("2,1-2", 2) == [1, 0]

    @pytest.mark.parametrize("text", ["0", "4", "x", "3-1", "1-", "", " , "])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_selection(text, 3)


class TestScanInterrupt:
    def test_ctrl_c_shows_partial_result(self, tmp_path, isolated_config, no_system_protection):
        partial = FileEntry(path=str(tmp_path / "partial.iso"), size=5000, modified_at=datetime(2024, 1, 1))

        def slow_scan(root, threshold, on_progress, cancel_token, guard, report_visits):
            on_progress(ScanProgress(items_found=1, current_path=partial.path))
            for _ in range(1000):
                if cancel_token.cancelled:
                    break
                time.sleep(0.01)
            status = ScanStatus.CANCELLED if cancel_token.cancelled else ScanStatus.COMPLETED
            return ScanOutcome(status=status, entries=[partial], root=root, threshold=threshold)

        real_wait = ScanSession.wait
        calls = []

        def interrupted_wait(self, *args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise KeyboardInterrupt
            return real_wait(self, *args, **kwargs)

        with patch("iclean.session.scan", slow_scan), patch.object(ScanSession, "wait", interrupted_wait):
            result = runner.invoke(app, ["scan", str(tmp_path), "-t", "1000"])

        assert result.exit_code == 0
        assert "Scan cancelled" in result.stdout
        assert "partial.iso" in result.stdout
        assert len(calls) == 2

    def test_missing_terminal_event_uses_session_state(self, tmp_path, isolated_config, no_system_protection):
        make_file(tmp_path / "big.iso", 5000)
        with patch.object(ScanSession, "subscribe", lambda self, callback: (lambda: None)):
            result = runner.invoke(app, ["scan", str(tmp_path), "-t", "1000"])
        assert result.exit_code == 0
        assert "big.iso" in result.stdout
        assert "Scan cancelled" not in result.stdout

    def test_missing_terminal_event_after_failure(self, isolated_config):
        with patch.object(ScanSession, "subscribe", lambda self, callback: (lambda: None)):
            result = runner.invoke(app, ["scan", "/System/anything"])
        assert result.exit_code == 1
        assert "Protected path" in result.stdout


class TestEmptyTrash:
    def test_empty_trash(self, tmp_path, isolated_config):
        trash = tmp_path / "Trash"
        make_file(trash / "old.dmg", 10)
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(json.dumps({"trash_dir": str(trash)}))

        result = runner.invoke(app, ["empty-trash", "--yes"])

        assert result.exit_code == 0
        assert "Trash emptied" in result.stdout
        assert list(trash.iterdir()) == []

    def test_empty_trash_shows_disk_usage(self, tmp_path, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(json.dumps({"trash_dir": str(tmp_path / "Trash")}))
        usage = DiskUsage(total_bytes=1000, used_bytes=400, free_bytes=600)

        with patch("iclean.session.get_disk_usage", return_value=usage):
            result = runner.invoke(app, ["empty-trash", "--yes"])

        assert result.exit_code == 0
        assert "Trash emptied" in result.stdout
        assert "Disk Usage" in result.stdout
        assert "40% Used" in result.stdout

    def test_empty_trash_disk_usage_failure_is_ignored(self, tmp_path, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(json.dumps({"trash_dir": str(tmp_path / "Trash")}))

        with patch("iclean.session.get_disk_usage", side_effect=DiskUsageQueryError("no capacity")):
            result = runner.invoke(app, ["empty-trash", "--yes"])

        assert result.exit_code == 0
        assert "Trash emptied" in result.stdout
        assert "Disk Usage" not in result.stdout

    def test_empty_trash_declined(self, tmp_path, isolated_config):
        with patch("iclean.cli.confirm_action", return_value=False):
            result = runner.invoke(app, ["empty-trash"])
        assert result.exit_code == 0
        assert "Cancelled" in result.stdout

    def test_empty_trash_failure(self, tmp_path, isolated_config):
        trash = tmp_path / "Trash"
        make_file(trash / "old.dmg", 10)
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(json.dumps({"trash_dir": str(trash)}))

        with patch("iclean.cleaner.Path.unlink", side_effect=PermissionError("denied")):
            result = runner.invoke(app, ["empty-trash", "--yes"])

        assert result.exit_code == 1
        assert "Error emptying trash" in result.stdout


class TestProtected:
    def test_lists_locations(self, isolated_config):
        result = runner.invoke(app, ["protected"])
        assert result.exit_code == 0
        assert "/System" in result.stdout
        assert "Protected Locations" in result.stdout
