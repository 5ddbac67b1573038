"""Tests for the sync engine."""

import io
import os
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

from pybun.api import BunClient
from pybun.exceptions import BunCancelledError, BunInventoryError
from pybun.models import StorageObject
from pybun.output import OutputFormatter
from pybun.sync import (
    CancellationToken,
    ProgressReporter,
    SyncDirection,
    SyncEngine,
    SyncState,
    local_path_for,
)

OLD = datetime(2020, 1, 1, tzinfo=timezone.utc)
FUTURE = datetime(2100, 1, 1, tzinfo=timezone.utc)


def _remote(relative_path, length, changed=OLD, zone="zone"):
    """Build a remote listing entry for a zone-relative path."""
    parent, _, name = relative_path.rpartition("/")
    path = f"/{zone}/{parent}/" if parent else f"/{zone}/"
    return StorageObject(
        object_name=name,
        path=path,
        storage_zone_name=zone,
        is_directory=False,
        length=length,
        last_changed=changed,
    )


def _remote_dir(relative_path, zone="zone"):
    parent, _, name = relative_path.rpartition("/")
    path = f"/{zone}/{parent}/" if parent else f"/{zone}/"
    return StorageObject(
        object_name=name, path=path, storage_zone_name=zone, is_directory=True
    )


class TestSyncEngine:
    """Test SyncEngine functionality."""

    @pytest.fixture
    def remote_content(self):
        """Contents served by the fake zone, keyed by relative path."""
        return {}

    @pytest.fixture
    def mock_client(self, remote_content):
        """Create a mock storage client serving remote_content."""
        client = Mock(spec=BunClient)
        client.zone = "zone"
        client.list_files.return_value = []

        def get_file(remote_name, destination, progress_callback=None, **kwargs):
            data = remote_content[remote_name]
            destination.write(data)
            if progress_callback:
                progress_callback(len(data), len(data))
            return len(data)

        client.get_file.side_effect = get_file
        client.put_file.return_value = 201
        return client

    @pytest.fixture
    def mock_output(self):
        """Create a mock output formatter."""
        output = Mock(spec=OutputFormatter)
        output.quiet = True  # Suppress output during tests
        return output

    @pytest.fixture
    def sync_engine(self, mock_client, mock_output):
        """Create a sync engine instance."""
        return SyncEngine(mock_client, mock_output)

    def test_create_sync_engine(self, mock_client, mock_output):
        """Test creating a sync engine."""
        engine = SyncEngine(mock_client, mock_output)
        assert engine.client == mock_client
        assert engine.output == mock_output
        assert engine.operations is not None
        assert engine.reporter is None

    def test_invalid_direction_fails(self, sync_engine, mock_client, tmp_path):
        """An unknown direction fails before anything is listed."""
        result = sync_engine.sync(tmp_path, "sideways")

        assert result.state is SyncState.FAILED
        assert "Invalid sync direction" in result.error
        mock_client.list_files.assert_not_called()

    def test_none_direction_fails(self, sync_engine, mock_client, tmp_path):
        """SyncDirection.NONE is rejected."""
        result = sync_engine.sync(tmp_path, SyncDirection.NONE)

        assert result.state is SyncState.FAILED
        mock_client.list_files.assert_not_called()

    @pytest.mark.parametrize("direction", ["up", "down"])
    def test_missing_root_fails(self, sync_engine, mock_client, tmp_path, direction):
        """The local root must exist in both directions."""
        result = sync_engine.sync(tmp_path / "missing", direction)

        assert result.state is SyncState.FAILED
        assert "does not exist" in result.error
        mock_client.list_files.assert_not_called()
        assert not (tmp_path / "missing").exists()

    def test_root_not_directory_fails(self, sync_engine, tmp_path):
        """A file as root is rejected."""
        file_path = tmp_path / "test.txt"
        file_path.write_text("test")

        result = sync_engine.sync(file_path, "up")

        assert result.state is SyncState.FAILED
        assert "not a directory" in result.error

    def test_inventory_error_fails(self, sync_engine, mock_client, tmp_path):
        """A listing failure ends the run without transfers."""
        (tmp_path / "a.txt").write_bytes(b"data")
        mock_client.list_files.side_effect = BunInventoryError(
            "Could not complete listing: Invalid access key", 401
        )

        result = sync_engine.sync(tmp_path, "up")

        assert result.state is SyncState.FAILED
        assert "Could not complete listing" in result.error
        mock_client.put_file.assert_not_called()

    def test_cancelled_before_start(self, mock_client, mock_output, tmp_path):
        """A pre-set token stops the run before the listing."""
        token = CancellationToken()
        token.cancel()
        engine = SyncEngine(mock_client, mock_output, cancel_token=token)

        result = engine.sync(tmp_path, "down")

        assert result.state is SyncState.CANCELLED
        assert result.direction is SyncDirection.DOWN
        mock_client.list_files.assert_not_called()

    def test_upload_plan(self, sync_engine, mock_client, tmp_path):
        """Missing and changed local files are uploaded."""
        (tmp_path / "new.txt").write_bytes(b"new")
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "changed.txt").write_bytes(b"changed!")
        (tmp_path / "same.txt").write_bytes(b"same")
        mock_client.list_files.return_value = [
            _remote_dir("docs"),
            _remote("docs/changed.txt", 3, FUTURE),
            _remote("same.txt", 4, FUTURE),
            _remote("remote-only.txt", 1),
        ]

        result = sync_engine.sync(tmp_path, "up")

        assert result.state is SyncState.DONE
        assert result.direction is SyncDirection.UP
        assert [r.path for r in result.plan] == ["docs/changed.txt", "new.txt"]
        assert result.transferred == ["docs/changed.txt", "new.txt"]
        uploaded = [c.args[0] for c in mock_client.put_file.call_args_list]
        assert uploaded == ["docs/changed.txt", "new.txt"]
        mock_client.get_file.assert_not_called()
        mock_client.delete_file.assert_not_called()

    def test_download_plan(self, sync_engine, mock_client, remote_content, tmp_path):
        """Remote files are downloaded into their relative location."""
        remote_content.update({"a.txt": b"alpha", "docs/deep/b.txt": b"beta"})
        mock_client.list_files.return_value = [
            _remote("a.txt", 5),
            _remote_dir("docs"),
            _remote_dir("docs/deep"),
            _remote("docs/deep/b.txt", 4),
        ]
        (tmp_path / "local-only.txt").write_bytes(b"keep")

        result = sync_engine.sync(tmp_path, "down")

        assert result.state is SyncState.DONE
        assert result.transferred == ["a.txt", "docs/deep/b.txt"]
        assert (tmp_path / "a.txt").read_bytes() == b"alpha"
        assert (tmp_path / "docs" / "deep" / "b.txt").read_bytes() == b"beta"
        assert (tmp_path / "local-only.txt").read_bytes() == b"keep"
        mock_client.put_file.assert_not_called()

    def test_download_is_idempotent(
        self, sync_engine, mock_client, remote_content, tmp_path
    ):
        """A second run right after a successful one plans nothing."""
        remote_content["a.txt"] = b"alpha"
        mock_client.list_files.return_value = [_remote("a.txt", 5)]

        first = sync_engine.sync(tmp_path, "down")
        second = sync_engine.sync(tmp_path, "down")

        assert first.planned == 1
        assert second.state is SyncState.DONE
        assert second.planned == 0
        assert mock_client.get_file.call_count == 1

    def test_newer_local_copy_is_kept(
        self, sync_engine, mock_client, remote_content, tmp_path
    ):
        """A local file newer than the remote one with equal size is kept."""
        local = tmp_path / "a.txt"
        local.write_bytes(b"local")
        remote_content["a.txt"] = b"alpha"
        mock_client.list_files.return_value = [_remote("a.txt", 5)]

        result = sync_engine.sync(tmp_path, "down")

        assert result.planned == 0
        assert local.read_bytes() == b"local"

    def test_older_local_copy_is_replaced(
        self, sync_engine, mock_client, remote_content, tmp_path
    ):
        """A local file older than the remote one is replaced."""
        local = tmp_path / "a.txt"
        local.write_bytes(b"local")
        os.utime(local, (OLD.timestamp(), OLD.timestamp()))
        remote_content["a.txt"] = b"alpha"
        mock_client.list_files.return_value = [_remote("a.txt", 5, FUTURE)]

        result = sync_engine.sync(tmp_path, "down")

        assert result.transferred == ["a.txt"]
        assert local.read_bytes() == b"alpha"

    def test_dry_run_transfers_nothing(self, sync_engine, mock_client, tmp_path):
        """A dry run computes the plan only."""
        (tmp_path / "a.txt").write_bytes(b"data")

        result = sync_engine.sync(tmp_path, "up", dry_run=True)

        assert result.state is SyncState.DONE
        assert result.planned == 1
        assert result.transferred == []
        mock_client.put_file.assert_not_called()

    def test_failed_file_does_not_fail_run(self, sync_engine, mock_client, tmp_path):
        """Per-file errors are collected and the run still finishes."""
        (tmp_path / "a.txt").write_bytes(b"a")
        (tmp_path / "b.txt").write_bytes(b"b")

        def put_file(remote_name, source, **kwargs):
            if remote_name == "a.txt":
                raise OSError("disk error")
            return 201

        mock_client.put_file.side_effect = put_file

        result = sync_engine.sync(tmp_path, "up")

        assert result.state is SyncState.DONE
        assert result.transferred == ["b.txt"]
        assert list(result.failed) == ["a.txt"]

    def test_cancel_during_download(
        self, mock_client, mock_output, remote_content, tmp_path
    ):
        """Cancelling mid-file stops the run and leaves no partial file."""
        token = CancellationToken()
        engine = SyncEngine(mock_client, mock_output, cancel_token=token)
        remote_content.update({"a.txt": b"alpha", "b.txt": b"beta"})
        mock_client.list_files.return_value = [_remote("a.txt", 5), _remote("b.txt", 4)]

        def get_file(remote_name, destination, **kwargs):
            destination.write(b"al")
            token.cancel()
            raise BunCancelledError("Operation cancelled")

        mock_client.get_file.side_effect = get_file

        result = engine.sync(tmp_path, "down")

        assert result.state is SyncState.CANCELLED
        assert result.transferred == []
        assert mock_client.get_file.call_count == 1
        assert list(tmp_path.iterdir()) == []

    def test_progress_reporter_receives_callbacks(
        self, mock_client, mock_output, remote_content, tmp_path
    ):
        """Byte progress is forwarded to the reporter."""
        reporter = Mock()
        engine = SyncEngine(mock_client, mock_output, reporter=reporter)
        remote_content["a.txt"] = b"alpha"
        mock_client.list_files.return_value = [_remote("a.txt", 5)]

        engine.sync(tmp_path, "down")

        reporter.callback_for.assert_called_once_with(5)
        reporter.callback_for.return_value.assert_called_once_with(5, 5)

    def test_result_to_dict(self, sync_engine, tmp_path):
        """Results serialize to a JSON-friendly summary."""
        (tmp_path / "a.txt").write_bytes(b"data")

        data = sync_engine.sync(tmp_path, "up").to_dict()

        assert data == {
            "state": "done",
            "direction": "up",
            "planned": 1,
            "transferred": 1,
            "failed": {},
            "error": None,
        }


class TestSyncEngineLocalEdgeCases:
    """Sync runs involving links and interrupted progress lines."""

    @pytest.fixture
    def mock_client(self):
        client = Mock(spec=BunClient)
        client.zone = "zone"
        client.list_files.return_value = []
        client.put_file.return_value = 201
        return client

    @pytest.fixture
    def mock_output(self):
        output = Mock(spec=OutputFormatter)
        output.quiet = True
        return output

    def test_symlinked_file_is_uploaded(self, mock_client, mock_output, tmp_path):
        """A link inside the root to a file outside it is uploaded like a file."""
        root = tmp_path / "root"
        root.mkdir()
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "real.txt").write_bytes(b"linked data")
        (root / "link.txt").symlink_to(outside / "real.txt")
        uploaded = {}

        def put_file(remote_name, source, **kwargs):
            uploaded[remote_name] = source.read()
            return 201

        mock_client.put_file.side_effect = put_file

        result = SyncEngine(mock_client, mock_output).sync(root, "up")

        assert result.state is SyncState.DONE
        assert result.failed == {}
        assert result.transferred == ["link.txt"]
        assert uploaded == {"link.txt": b"linked data"}

    def test_symlinked_file_converges(self, mock_client, mock_output, tmp_path):
        """Once uploaded, a linked file is not planned again."""
        root = tmp_path / "root"
        root.mkdir()
        target = tmp_path / "real.txt"
        target.write_bytes(b"12345")
        (root / "link.txt").symlink_to(target)
        mock_client.list_files.return_value = [_remote("link.txt", 5, FUTURE)]

        result = SyncEngine(mock_client, mock_output).sync(root, "up")

        assert result.planned == 0

    def test_failed_transfer_finishes_progress_line(
        self, mock_client, mock_output, tmp_path
    ):
        """The reporter is told a file ended even when its transfer failed."""
        (tmp_path / "a.txt").write_bytes(b"a")
        mock_client.put_file.side_effect = OSError("disk error")
        reporter = Mock()

        result = SyncEngine(mock_client, mock_output, reporter=reporter).sync(
            tmp_path, "up"
        )

        assert list(result.failed) == ["a.txt"]
        reporter.finish.assert_called_once_with()

    def test_failed_transfer_output_starts_on_new_line(
        self, mock_client, tmp_path
    ):
        """The failure message is not written over a half-drawn progress line."""
        (tmp_path / "a.txt").write_bytes(b"x" * 2048)
        stream = io.StringIO()
        now = [0.0]
        reporter = ProgressReporter(
            refresh_interval=0.5, stream=stream, clock=lambda: now[0]
        )

        def put_file(remote_name, source, progress_callback=None, **kwargs):
            progress_callback(0, 2048)
            now[0] += 1.0
            progress_callback(1024, 2048)
            raise OSError("connection dropped")

        mock_client.put_file.side_effect = put_file
        output = Mock(spec=OutputFormatter)
        output.quiet = False

        def error_after_newline(message):
            assert stream.getvalue().endswith("\n")

        output.error.side_effect = error_after_newline

        result = SyncEngine(mock_client, output, reporter=reporter).sync(
            tmp_path, "up"
        )

        assert list(result.failed) == ["a.txt"]
        output.error.assert_called_once()
        assert " 50%" in stream.getvalue()
        assert not reporter.running


class TestLocalPathFor:
    """Tests for local_path_for."""

    def test_maps_below_root(self, tmp_path):
        """Relative paths are mapped below the root."""
        assert local_path_for(tmp_path, "docs/a.txt") == tmp_path / "docs" / "a.txt"

    def test_rejects_escaping_paths(self, tmp_path):
        """Paths leaving the root are refused."""
        with pytest.raises(ValueError, match="escapes"):
            local_path_for(tmp_path / "root", "../outside.txt")

    def test_rejects_nested_escape(self, tmp_path):
        """Parent references inside the path are normalized before checking."""
        with pytest.raises(ValueError, match="escapes"):
            local_path_for(tmp_path / "root", "docs/../../outside.txt")

    def test_allows_inner_parent_references(self, tmp_path):
        """Parent references that stay below the root are accepted."""
        assert local_path_for(tmp_path, "docs/../a.txt") == tmp_path / "a.txt"

    def test_symlinked_file_maps_to_link(self, tmp_path):
        """A link inside the root pointing elsewhere maps to the link itself."""
        root = tmp_path / "root"
        root.mkdir()
        outside = tmp_path / "outside.txt"
        outside.write_bytes(b"data")
        (root / "link.txt").symlink_to(outside)

        assert local_path_for(root, "link.txt") == root / "link.txt"

    def test_accepts_relative_root(self):
        """A relative root is made absolute against the working directory."""
        root = Path("relative-root")
        assert local_path_for(root, "a.txt") == Path.cwd() / "relative-root" / "a.txt"
