"""Tests for push/pull sequencing, prompts and the single-flight guard."""

import os
import threading
from unittest.mock import Mock

import pytest

from conftest import remote_files, symlink_or_skip

from vault_sync.applier import RemoteChangeApplier
from vault_sync.core import RemoteStatus, SyncOutcome, SyncPhase
from vault_sync.errors import FingerprintMismatchError, NetworkError, SyncInProgressError
from vault_sync.hashing import git_blob_hash
from vault_sync.local_store import FilesystemLocalStore
from vault_sync.lock import SingleFlight
from vault_sync.orchestrator import ConfirmationPrompt, SyncDeps, SyncOrchestrator
from vault_sync.remote.base import RemoteObject


def always(answer):
    prompts = []

    def confirm(prompt):
        prompts.append(prompt)
        return answer
    confirm.prompts = prompts
    return confirm


class TestPush:

    def test_first_push_into_empty_repository(self, make_orchestrator, write_file, remote_store):
        write_file("note.md", "hello\n")
        write_file("folder/inner.md", "inner\n")

        orch = make_orchestrator()
        report = orch.push_vault()

        assert report.outcome == SyncOutcome.PUSHED
        assert report.succeeded
        assert sorted(report.applied) == ["folder/inner.md", "note.md"]
        assert remote_files(remote_store) == {"folder/inner.md": b"inner\n", "note.md": b"hello\n"}

    def test_clean_push_issues_no_writes(self, make_orchestrator, write_file, remote_store):
        write_file("note.md", "X")
        remote_store.put_object("note.md", b"X")
        spy = Mock(wraps=remote_store)

        report = make_orchestrator(remote=spy).push_vault()

        assert report.outcome == SyncOutcome.NOTHING_TO_PUSH
        assert report.summary() == "Nothing to push"
        assert report.succeeded
        spy.put_object.assert_not_called()
        spy.delete_object.assert_not_called()

    def test_rewrite_with_same_bytes_is_noop(self, make_orchestrator, write_file):
        path = write_file("a.md", "stable")
        orch = make_orchestrator()
        orch.push_vault()

        path.write_bytes(b"stable")
        os.utime(path, (5_000_000_000, 5_000_000_000))

        assert orch.push_vault().outcome == SyncOutcome.NOTHING_TO_PUSH

    def test_delete_propagation_after_confirm(self, make_orchestrator, remote_store):
        remote_store.put_object("a.md", b"a")
        remote_store.put_object("b.md", b"b")
        spy = Mock(wraps=remote_store)
        confirm = always(True)

        report = make_orchestrator(confirm=confirm, remote=spy).push_vault()

        assert confirm.prompts == [ConfirmationPrompt.EMPTY_PUSH]
        assert report.outcome == SyncOutcome.PUSHED
        assert sorted(report.applied) == ["a.md", "b.md"]
        assert remote_files(remote_store) == {}
        spy.put_object.assert_not_called()

    def test_empty_push_declined_leaves_remote(self, make_orchestrator, remote_store):
        remote_store.put_object("a.md", b"a")
        spy = Mock(wraps=remote_store)

        orch = make_orchestrator(confirm=always(False), remote=spy)
        report = orch.push_vault()

        assert report.outcome == SyncOutcome.ABORTED
        assert report.phase == SyncPhase.ABORTED
        assert not report.succeeded
        assert remote_files(remote_store) == {"a.md": b"a"}
        # Asked before the remote was even read
        spy.list_children.assert_not_called()

    def test_empty_push_declined_by_default(self, make_orchestrator, remote_store):
        remote_store.put_object("a.md", b"a")
        assert make_orchestrator().push_vault().outcome == SyncOutcome.ABORTED

    def test_remote_unreachable_fails_before_mutation(self, make_orchestrator, write_file):
        write_file("a.md")
        remote = Mock()
        remote.list_children.side_effect = NetworkError("offline")

        orch = make_orchestrator(remote=remote)
        report = orch.push_vault()

        assert report.outcome == SyncOutcome.FAILED
        assert orch.phase == SyncPhase.FAILED
        remote.put_object.assert_not_called()
        remote.delete_object.assert_not_called()

    def test_partial_failure_reported(self, make_orchestrator, write_file, remote_store):
        write_file("ok.md", "fine")
        write_file("bad.png", b"")

        report = make_orchestrator().push_vault()

        assert report.outcome == SyncOutcome.PARTIAL
        assert report.phase == SyncPhase.DONE
        assert report.applied == ["ok.md"]
        assert [f.path for f in report.failed] == ["bad.png"]
        assert not report.succeeded

    def test_phase_history(self, make_orchestrator, write_file):
        write_file("a.md")
        orch = make_orchestrator()
        orch.push_vault()
        assert orch.phase.is_terminal
        assert orch.history == [
            SyncPhase.IDLE, SyncPhase.SCANNING, SyncPhase.DIFFING, SyncPhase.APPLYING, SyncPhase.DONE,
        ]

    def test_integrity_violation_propagates(self, make_orchestrator, write_file):
        write_file("a.md", "local")
        remote = Mock()
        remote.list_children.return_value = []
        remote.get_object.return_value = RemoteObject(b"remote", git_blob_hash(b"not remote"))

        orch = make_orchestrator(remote=remote)
        with pytest.raises(FingerprintMismatchError):
            orch.push_vault()
        assert orch.phase == SyncPhase.FAILED
        assert not orch.deps.guard.busy

    def test_out_of_vault_symlink_not_pushed(self, tmp_path, make_orchestrator, write_file, remote_store, vault_dir):
        write_file("a.md", "mine")
        outside = tmp_path / "secret.md"
        outside.write_text("private")
        symlink_or_skip(vault_dir / "secret.md", outside)

        report = make_orchestrator().push_vault()

        assert report.outcome == SyncOutcome.PUSHED
        assert remote_files(remote_store) == {"a.md": b"mine"}

    def test_scan_failure_reports_failed(self, make_orchestrator, write_file, local_store):
        write_file("a.md")
        local = Mock(wraps=local_store)
        local.read_text.side_effect = PermissionError("denied")
        remote = Mock()

        orch = make_orchestrator(local=local, remote=remote)
        report = orch.push_vault()

        assert report.outcome == SyncOutcome.FAILED
        assert report.phase == SyncPhase.FAILED
        assert "denied" in report.message
        assert orch.phase.is_terminal
        assert not orch.deps.guard.busy
        remote.put_object.assert_not_called()

    def test_hosted_remote_written_serially(self, make_orchestrator, write_file, remote_store, monkeypatch):
        for name in ("a.md", "b.md", "c.md"):
            write_file(name, name)
        remote_store.supports_concurrent_writes = False
        applier_cls = Mock(wraps=RemoteChangeApplier)
        monkeypatch.setattr("vault_sync.orchestrator.RemoteChangeApplier", applier_cls)

        report = make_orchestrator(max_workers=4).push_vault()

        assert report.outcome == SyncOutcome.PUSHED
        assert applier_cls.call_args.args[2] == 1

    def test_concurrent_remote_keeps_worker_count(self, make_orchestrator, write_file, monkeypatch):
        write_file("a.md")
        applier_cls = Mock(wraps=RemoteChangeApplier)
        monkeypatch.setattr("vault_sync.orchestrator.RemoteChangeApplier", applier_cls)

        make_orchestrator(max_workers=4).push_vault()

        assert applier_cls.call_args.args[2] == 4


class TestPull:

    def test_new_file_downloaded_once(self, make_orchestrator, write_file, remote_store, vault_dir):
        remote_store.put_object("a.md", b"X")
        remote_store.put_object("b.md", b"Y")
        write_file("a.md", "X")
        spy = Mock(wraps=remote_store)

        report = make_orchestrator(remote=spy).pull_vault()

        assert report.outcome == SyncOutcome.PULLED
        assert report.applied == ["b.md"]
        assert (vault_dir / "b.md").read_bytes() == b"Y"
        assert [c.args[0] for c in spy.get_object.call_args_list] == ["b.md"]
        spy.delete_object.assert_not_called()

    def test_empty_repository_leaves_local_alone(self, make_orchestrator, write_file, vault_dir):
        write_file("mine.md", "keep")

        report = make_orchestrator().pull_vault()

        assert report.outcome == SyncOutcome.REMOTE_EMPTY
        assert report.summary() == "Repository is empty"
        assert report.succeeded
        assert (vault_dir / "mine.md").read_text() == "keep"

    def test_remote_error_fails(self, make_orchestrator, write_file, vault_dir):
        write_file("mine.md", "keep")
        remote = Mock()
        remote.list_children.side_effect = NetworkError("offline")

        report = make_orchestrator(remote=remote).pull_vault()

        assert report.outcome == SyncOutcome.FAILED
        assert report.phase == SyncPhase.FAILED
        assert (vault_dir / "mine.md").exists()

    def test_up_to_date(self, make_orchestrator, write_file, remote_store):
        remote_store.put_object("a.md", b"same")
        write_file("a.md", "same")
        report = make_orchestrator().pull_vault()
        assert report.outcome == SyncOutcome.NOTHING_TO_PULL
        assert report.summary() == "Already up to date"

    def test_local_only_files_removed(self, make_orchestrator, write_file, remote_store, vault_dir):
        remote_store.put_object("keep.md", b"k")
        write_file("keep.md", "k")
        write_file("stray/old.md", "o")
        # Local tree older than remote history, so no prompt
        for p in ("keep.md", "stray/old.md", "stray"):
            os.utime(vault_dir / p, (1_000, 1_000))

        report = make_orchestrator().pull_vault()

        assert report.outcome == SyncOutcome.PULLED
        assert report.applied == ["stray/old.md", "stray"]
        assert not (vault_dir / "stray").exists()

    def test_conflict_declined_aborts_without_changes(self, make_orchestrator, write_file, remote_store, vault_dir):
        remote_store.put_object("a.md", b"remote")
        path = write_file("a.md", "local edit")
        os.utime(path, (9_000_000_000, 9_000_000_000))
        confirm = always(False)

        orch = make_orchestrator(confirm=confirm)
        report = orch.pull_vault()

        assert confirm.prompts == [ConfirmationPrompt.PULL_CONFLICT]
        assert report.outcome == SyncOutcome.ABORTED
        assert SyncPhase.CONFLICT_CHECK in orch.history
        assert SyncPhase.APPLYING not in orch.history
        assert path.read_text() == "local edit"

    def test_conflict_accepted_overwrites(self, make_orchestrator, write_file, remote_store):
        remote_store.put_object("a.md", b"remote")
        path = write_file("a.md", "local edit")
        os.utime(path, (9_000_000_000, 9_000_000_000))

        report = make_orchestrator(confirm=always(True)).pull_vault()

        assert report.outcome == SyncOutcome.PULLED
        assert path.read_bytes() == b"remote"

    def test_no_prompt_when_remote_newer(self, make_orchestrator, write_file, remote_store):
        path = write_file("a.md", "local")
        os.utime(path, (1_000, 1_000))
        remote_store.put_object("a.md", b"remote")
        confirm = always(False)

        report = make_orchestrator(confirm=confirm).pull_vault()

        assert confirm.prompts == []
        assert report.outcome == SyncOutcome.PULLED

    def test_push_then_pull_round_trip(self, tmp_path, remote_store, write_file):
        write_file("a.md", "alpha\r\n")
        write_file("img/x.png", bytes(range(10)))
        write_file("sub/empty.md", "")
        pusher = SyncOrchestrator(SyncDeps(local=FilesystemLocalStore(tmp_path / "vault"), remote=remote_store))
        assert pusher.push_vault().outcome == SyncOutcome.PUSHED

        other = tmp_path / "other"
        other.mkdir()
        puller = SyncOrchestrator(SyncDeps(local=FilesystemLocalStore(other), remote=remote_store))
        assert puller.pull_vault().outcome == SyncOutcome.PULLED

        assert (other / "a.md").read_bytes() == b"alpha\r\n"
        assert (other / "img/x.png").read_bytes() == bytes(range(10))
        assert (other / "sub/empty.md").read_bytes() == b"\n"
        assert pusher.push_vault().outcome == SyncOutcome.NOTHING_TO_PUSH

    def test_symlink_untouched_by_pull(self, make_orchestrator, write_file, remote_store, vault_dir):
        remote_store.put_object("a.md", b"A")
        remote_store.put_object("b.md", b"B")
        target = write_file("a.md", "A")
        link = symlink_or_skip(vault_dir / "link.md", target)

        report = make_orchestrator(confirm=always(True)).pull_vault()

        assert report.outcome == SyncOutcome.PULLED
        assert report.applied == ["b.md"]
        assert link.is_symlink()
        assert target.read_bytes() == b"A"

    def test_scan_failure_reports_failed(self, make_orchestrator, write_file, local_store, vault_dir):
        write_file("a.md", "keep")
        local = Mock(wraps=local_store)
        local.list_all.side_effect = PermissionError("denied")

        orch = make_orchestrator(local=local)
        report = orch.pull_vault()

        assert report.outcome == SyncOutcome.FAILED
        assert orch.phase == SyncPhase.FAILED
        assert orch.history[-1] == SyncPhase.FAILED
        assert (vault_dir / "a.md").read_text() == "keep"


class TestStatus:

    def test_status_reports_both_directions(self, make_orchestrator, write_file, remote_store):
        remote_store.put_object("remote.md", b"r")
        write_file("local.md", "l")

        status = make_orchestrator().status()

        assert status.remote_status == RemoteStatus.AVAILABLE
        assert [e.path for e in status.push.to_upsert] == ["local.md"]
        assert [e.path for e in status.push.to_delete] == ["remote.md"]
        assert [e.path for e in status.pull.to_upsert] == ["remote.md"]
        assert [e.path for e in status.pull.to_delete] == ["local.md"]
        assert not status.in_sync

    def test_status_empty_remote(self, make_orchestrator, write_file):
        write_file("local.md", "l")
        status = make_orchestrator().status()
        assert status.remote_status == RemoteStatus.EMPTY
        assert status.pull.is_empty
        assert status.local_files == 1


class TestSingleFlight:

    def test_second_sync_rejected_while_first_applies(self, local_store, remote_store, write_file):
        write_file("a.md", "a")
        entered = threading.Event()
        release = threading.Event()

        class SlowRemote:
            def __getattr__(self, name):
                return getattr(remote_store, name)

            def put_object(self, *args):
                entered.set()
                release.wait(5)
                return remote_store.put_object(*args)

        guard = SingleFlight()
        orch = SyncOrchestrator(SyncDeps(local=local_store, remote=SlowRemote(), guard=guard))
        worker = threading.Thread(target=orch.push_vault)
        worker.start()
        try:
            assert entered.wait(5)
            with pytest.raises(SyncInProgressError):
                orch.pull_vault()
        finally:
            release.set()
            worker.join(5)

        assert not guard.busy
        assert remote_files(remote_store) == {"a.md": b"a"}

    def test_file_lock_rejects_second_holder(self, tmp_path):
        lock_path = tmp_path / "sync.lock"
        first = SingleFlight(lock_path)
        second = SingleFlight(lock_path)

        with first.hold():
            with pytest.raises(SyncInProgressError):
                with second.hold():
                    pass

        with second.hold():
            pass
