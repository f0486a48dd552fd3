"""Tests for the sync engine."""

from pathlib import Path
from unittest.mock import Mock

import pytest

from pyghsync.exceptions import (
    AlreadyLinkedError,
    BranchMissingError,
    ConfigurationError,
    ConflictError,
    DirectoryNotEmptyError,
    EmptyRepositoryError,
    LedgerFormatError,
    NetworkError,
    NothingToCommitError,
    NotLinkedError,
    PreconditionError,
    RemoteRepositoryMissingError,
    StaleLocalError,
    UpToDateError,
)
from pyghsync.output import OutputFormatter
from pyghsync.sync import (
    ConflictChoice,
    ConflictKind,
    ConflictStrategy,
    LedgerStore,
    LocalDirectory,
    PullPhase,
    RemoteCondition,
    ScriptedDecisionProvider,
    SyncEngine,
    detect_local_changes,
)
from pyghsync.utils import EMPTY_TREE_SHA

from conftest import FakeGitHubClient

INITIAL_FILES = {
    "a.txt": b"alpha",
    "b.txt": b"bravo",
    "docs/c.md": b"charlie",
}


def ledger_bytes(root: Path) -> tuple[bytes, bytes]:
    """Raw contents of the state and tree ledgers."""
    store = LedgerStore(root)
    return store.state_file.read_bytes(), store.tree_file.read_bytes()


def local_files(root: Path) -> dict[str, bytes]:
    """Contents of every file of a working copy, metadata excluded."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in root.rglob("*")
        if p.is_file() and ".ghsync" not in p.relative_to(root).parts
    }


def local_changes(engine: SyncEngine):
    return detect_local_changes(engine.directory, engine.ledgers.load_tree())


@pytest.fixture
def work_dir(tmp_path):
    """Target directory of a clone (does not exist yet)."""
    return tmp_path / "work"


@pytest.fixture
def cloned(remote, work_dir, make_engine):
    """Remote with three files at C1, cloned into work_dir."""
    c1 = remote.push(INITIAL_FILES)
    engine = make_engine(remote, work_dir)
    engine.clone("octo/hello")
    return engine, c1


class TestClone:
    """Tests for cloning."""

    def test_clone_into_empty_directory(self, remote, work_dir, make_engine):
        """Test that a clone mirrors files and records the commit."""
        c1 = remote.push(INITIAL_FILES)
        engine = make_engine(remote, work_dir)

        result = engine.clone("octo/hello")

        assert local_files(work_dir) == INITIAL_FILES
        state_text, tree_text = ledger_bytes(work_dir)
        tree_lines = tree_text.decode().split("\r\n")
        assert len([line for line in tree_lines if line]) == 3
        assert state_text.decode().split("\r\n")[2] == c1
        assert result.commit == c1
        assert sorted(result.downloaded) == sorted(INITIAL_FILES)

    def test_clone_leaves_no_local_changes(self, cloned):
        """Test that all markers are cleared after cloning."""
        engine, _ = cloned
        assert not local_changes(engine).has_changes

    def test_clone_into_non_empty_directory_fails(self, remote, work_dir, make_engine):
        """Test that an unlinked non-empty directory is refused."""
        remote.push(INITIAL_FILES)
        work_dir.mkdir()
        (work_dir / "stray.txt").write_bytes(b"x")

        with pytest.raises(DirectoryNotEmptyError):
            make_engine(remote, work_dir).clone("octo/hello")

        assert not LedgerStore(work_dir).exists()

    def test_clone_of_empty_repository_fails(self, remote, work_dir, make_engine):
        """Test that an empty repository must be linked instead."""
        with pytest.raises(EmptyRepositoryError, match="link"):
            make_engine(remote, work_dir).clone("octo/hello")

    def test_clone_linked_to_other_repository_fails(self, cloned, make_engine):
        """Test that a clone never switches repositories."""
        engine, _ = cloned
        other = FakeGitHubClient("octo/other")
        other.push({"z.txt": b"z"})

        with pytest.raises(AlreadyLinkedError):
            make_engine(other, engine.directory.root).clone("octo/other")

    def test_clone_resumes_with_missing_files(self, cloned, remote, make_engine):
        """Test that re-running a clone downloads only what is missing."""
        engine, c1 = cloned
        root = engine.directory.root
        (root / "b.txt").unlink()
        (root / "docs" / "c.md").write_bytes(b"cha")  # truncated download
        remote.blob_downloads.clear()

        result = make_engine(remote, root).clone("octo/hello")

        assert sorted(result.downloaded) == ["b.txt", "docs/c.md"]
        assert result.skipped == ["a.txt"]
        assert len(remote.blob_downloads) == 2
        assert local_files(root) == INITIAL_FILES
        assert result.commit == c1

    def test_clone_records_repository_casing(self, work_dir, make_engine):
        """Test that the properly cased name from the remote is stored."""
        remote = FakeGitHubClient("Octo/Hello")
        remote.push({"a.txt": b"a"})

        make_engine(remote, work_dir).clone("octo/hello")

        assert LedgerStore(work_dir).load_state().repository == "Octo/Hello"


class TestLink:
    """Tests for linking."""

    def test_link_empty_repository(self, remote, tmp_path, make_engine):
        """Test linking to a repository without commits."""
        (tmp_path / "x.txt").write_bytes(b"x")
        engine = make_engine(remote, tmp_path)

        result = engine.link("octo/hello")

        state = LedgerStore(tmp_path).load_state()
        assert state.branch == "master"
        assert state.commit is None
        assert result.commit is None
        assert engine.ledgers.load_tree() == {}
        assert local_changes(engine).added == {"x.txt"}

    def test_link_never_downloads(self, remote, tmp_path, make_engine):
        """Test that linking records the remote tree but leaves files alone."""
        c1 = remote.push(INITIAL_FILES)
        (tmp_path / "a.txt").write_bytes(b"alpha")
        engine = make_engine(remote, tmp_path)

        engine.link("octo/hello")

        assert remote.blob_downloads == []
        assert local_files(tmp_path) == {"a.txt": b"alpha"}
        assert engine.state.commit == c1
        changes = local_changes(engine)
        # Existing files are considered modified until the next commit
        assert changes.modified == {"a.txt"}
        assert changes.deleted == {"b.txt", "docs/c.md"}

    def test_link_twice_fails(self, remote, tmp_path, make_engine):
        """Test that an already linked directory is refused."""
        engine = make_engine(remote, tmp_path)
        engine.link("octo/hello")

        with pytest.raises(AlreadyLinkedError):
            make_engine(remote, tmp_path).link("octo/hello")


class TestPull:
    """Tests for pulling."""

    def test_pull_up_to_date(self, cloned, remote):
        """Test that an unchanged remote gives an empty result."""
        engine, c1 = cloned
        before = ledger_bytes(engine.directory.root)
        remote.blob_downloads.clear()

        result = engine.pull(ConflictStrategy.OVERWRITE_WITH_REMOTE)

        assert result.up_to_date
        assert result.commit == c1
        assert result.downloaded == [] and result.deleted == []
        assert remote.blob_downloads == []
        assert ledger_bytes(engine.directory.root) == before

    def test_pull_applies_remote_changes(self, cloned, remote):
        """Test that added, modified and deleted remote files are mirrored."""
        engine, _ = cloned
        new_files = {"a.txt": b"alpha 2", "docs/c.md": b"charlie", "d.txt": b"delta"}
        c2 = remote.push(new_files)

        result = engine.pull(ConflictStrategy.ASK)

        assert local_files(engine.directory.root) == new_files
        assert sorted(result.downloaded) == ["a.txt", "d.txt"]
        assert result.deleted == ["b.txt"]
        assert result.conflicts == []
        assert engine.state.commit == c2
        assert LedgerStore(engine.directory.root).load_state().commit == c2
        assert not local_changes(engine).has_changes

    def test_second_pull_is_a_no_op(self, cloned, remote):
        """Test that pulling twice does nothing the second time."""
        engine, _ = cloned
        remote.push({"a.txt": b"alpha 2"})
        engine.pull(ConflictStrategy.OVERWRITE_WITH_REMOTE)
        files = local_files(engine.directory.root)
        ledgers = ledger_bytes(engine.directory.root)

        result = engine.pull(ConflictStrategy.OVERWRITE_WITH_REMOTE)

        assert result.up_to_date
        assert local_files(engine.directory.root) == files
        assert ledger_bytes(engine.directory.root) == ledgers

    def test_pull_overwrite_with_remote(self, cloned, remote):
        """Test that a path modified on both sides takes the remote version."""
        engine, _ = cloned
        root = engine.directory.root
        (root / "a.txt").write_bytes(b"local edit")
        c2 = remote.push({**INITIAL_FILES, "a.txt": b"remote edit!"})

        result = engine.pull(ConflictStrategy.OVERWRITE_WITH_REMOTE)

        assert (root / "a.txt").read_bytes() == b"remote edit!"
        assert not engine.directory.is_modified("a.txt")
        assert engine.state.commit == c2
        assert engine.ledgers.load_tree()["a.txt"].size == len(b"remote edit!")
        assert result.conflicts == [
            (ConflictKind.MODIFIED_BOTH, "a.txt", ConflictChoice.TAKE_REMOTE)
        ]

    def test_pull_keep_local(self, cloned, remote):
        """Test that kept local edits stay modified against the new tree."""
        engine, _ = cloned
        root = engine.directory.root
        (root / "a.txt").write_bytes(b"local edit")
        (root / "b.txt").unlink()
        c2 = remote.push(
            {"a.txt": b"remote edit!", "b.txt": b"bravo 2", "docs/c.md": b"charlie"}
        )

        engine.pull(ConflictStrategy.KEEP_LOCAL)

        assert (root / "a.txt").read_bytes() == b"local edit"
        assert not (root / "b.txt").exists()
        assert engine.state.commit == c2
        changes = local_changes(engine)
        assert changes.modified == {"a.txt"}
        assert changes.deleted == {"b.txt"}

    def test_pull_deleted_remotely_modified_locally(self, cloned, remote):
        """Test both choices for a file deleted remotely but edited locally."""
        engine, _ = cloned
        root = engine.directory.root
        (root / "b.txt").write_bytes(b"bravo edited")
        remote.push({"a.txt": b"alpha", "docs/c.md": b"charlie"})

        decide = ScriptedDecisionProvider({"b.txt": ConflictChoice.KEEP_LOCAL})
        engine.decide = decide
        engine.pull(ConflictStrategy.ASK)

        assert decide.asked == [(ConflictKind.DELETED_REMOTELY_MODIFIED_LOCALLY, "b.txt")]
        assert (root / "b.txt").read_bytes() == b"bravo edited"
        assert local_changes(engine).added == {"b.txt"}

    def test_pull_added_both_take_remote(self, cloned, remote):
        """Test that a path added on both sides can take the remote version."""
        engine, _ = cloned
        root = engine.directory.root
        (root / "new.txt").write_bytes(b"mine")
        remote.push({**INITIAL_FILES, "new.txt": b"theirs"})

        engine.decide = ScriptedDecisionProvider(default=ConflictChoice.TAKE_REMOTE)
        result = engine.pull(ConflictStrategy.ASK)

        assert (root / "new.txt").read_bytes() == b"theirs"
        assert result.conflicts[0][0] is ConflictKind.ADDED_BOTH

    def test_pull_ask_without_provider_fails_cleanly(self, cloned, remote):
        """Test that ASK without a decision provider changes nothing."""
        engine, _ = cloned
        root = engine.directory.root
        (root / "a.txt").write_bytes(b"local edit")
        remote.push({**INITIAL_FILES, "a.txt": b"remote edit!"})
        before = ledger_bytes(root)

        with pytest.raises(ConfigurationError):
            engine.pull(ConflictStrategy.ASK)

        assert ledger_bytes(root) == before
        assert (root / "a.txt").read_bytes() == b"local edit"
        assert engine.phase is PullPhase.IDLE

    def test_pull_failure_leaves_ledgers_untouched(self, cloned, remote):
        """Test that an interrupted pull keeps the old ledgers."""
        engine, c1 = cloned
        root = engine.directory.root
        remote.push({"a.txt": b"alpha 2", "b.txt": b"bravo 2", "docs/c.md": b"c"})
        before = ledger_bytes(root)

        original_get_blob = remote.get_blob
        calls = []

        def failing_get_blob(sha):
            calls.append(sha)
            if len(calls) == 2:
                raise NetworkError("connection reset")
            return original_get_blob(sha)

        remote.get_blob = failing_get_blob

        with pytest.raises(NetworkError):
            engine.pull(ConflictStrategy.OVERWRITE_WITH_REMOTE)

        assert ledger_bytes(root) == before
        assert engine.state.commit == c1
        assert engine.phase is PullPhase.IDLE

    def test_pull_unencodable_remote_path_changes_nothing(self, cloned, remote):
        """Test that a remote path the tree ledger cannot hold is caught up front."""
        engine, c1 = cloned
        root = engine.directory.root
        remote.push({**INITIAL_FILES, "a.txt": b"alpha 2", "my file.txt": b"x"})
        before = ledger_bytes(root)
        files_before = local_files(root)
        downloads = len(remote.blob_downloads)

        with pytest.raises(LedgerFormatError, match="my file.txt"):
            engine.pull(ConflictStrategy.OVERWRITE_WITH_REMOTE)

        assert local_files(root) == files_before
        assert ledger_bytes(root) == before
        assert len(remote.blob_downloads) == downloads
        assert engine.state.commit == c1
        assert engine.phase is PullPhase.IDLE

    def test_pull_remote_missing(self, cloned, remote):
        """Test that a deleted remote repository is reported."""
        engine, _ = cloned
        remote.exists = False
        with pytest.raises(RemoteRepositoryMissingError):
            engine.pull()

    def test_pull_branch_missing(self, cloned, remote):
        """Test that a deleted remote branch is reported."""
        engine, _ = cloned
        remote.branches.clear()
        with pytest.raises(BranchMissingError):
            engine.pull()

    def test_pull_not_linked(self, remote, tmp_path, make_engine):
        """Test that pulling needs a linked directory."""
        with pytest.raises(NotLinkedError):
            make_engine(remote, tmp_path).pull()


class TestCommit:
    """Tests for committing."""

    def test_commit_uploads_changes(self, cloned, remote):
        """Test that added, modified and deleted files reach the remote."""
        engine, c1 = cloned
        root = engine.directory.root
        (root / "a.txt").write_bytes(b"alpha edited")
        (root / "b.txt").unlink()
        (root / "e.txt").write_bytes(b"echo")

        result = engine.commit("Edit files")

        assert remote.files() == {
            "a.txt": b"alpha edited",
            "docs/c.md": b"charlie",
            "e.txt": b"echo",
        }
        assert remote.branches["master"] == result.commit
        assert remote.commits[result.commit][1] == c1
        assert result.uploaded == ["a.txt", "e.txt"]
        assert result.deleted == ["b.txt"]
        assert engine.state.commit == result.commit
        assert not local_changes(engine).has_changes

    def test_commit_then_pull_is_up_to_date(self, cloned):
        """Test that the committed state is the synced state."""
        engine, _ = cloned
        (engine.directory.root / "a.txt").write_bytes(b"alpha edited")
        engine.commit("Edit")

        assert engine.pull().up_to_date

    def test_commit_without_changes(self, cloned):
        """Test that there must be something to commit."""
        engine, _ = cloned
        with pytest.raises(NothingToCommitError):
            engine.commit("Nothing")

    def test_commit_remote_missing(self, cloned, remote):
        """Test that a deleted remote repository is reported."""
        engine, _ = cloned
        (engine.directory.root / "a.txt").write_bytes(b"alpha edited")
        remote.exists = False

        with pytest.raises(RemoteRepositoryMissingError):
            engine.commit("Edit")

    def test_commit_branch_missing_while_others_exist(self, remote, tmp_path, make_engine):
        """Test that a commit never recreates a deleted branch."""
        remote.push({"a.txt": b"a"}, branch="develop")
        engine = make_engine(remote, tmp_path)
        engine.link("octo/hello")
        (tmp_path / "new.txt").write_bytes(b"new")
        before = ledger_bytes(tmp_path)
        blobs = dict(remote.blobs)

        with pytest.raises(PreconditionError) as exc_info:
            engine.commit("Add")

        assert isinstance(exc_info.value, BranchMissingError)
        assert remote.blobs == blobs

    def test_commit_fails_if_branch_moved_concurrently(self, cloned, remote):
        """Test that a ref moved by someone else rejects the commit."""
        engine, c1 = cloned
        root = engine.directory.root
        (root / "a.txt").write_bytes(b"alpha edited")
        before = ledger_bytes(root)
        original_create_commit = remote.create_commit

        def racing_create_commit(*args, **kwargs):
            sha = original_create_commit(*args, **kwargs)
            remote.branches["master"] = original_create_commit(
                "Concurrent", remote.commits[c1][0], c1
            )
            return sha

        remote.create_commit = racing_create_commit

        with pytest.raises(ConflictError):
            engine.commit("Edit a")

        assert ledger_bytes(root) == before
        assert engine.state.commit == c1
        assert local_changes(engine).modified == {"a.txt"}
        assert LocalDirectory(root).is_modified("a.txt")
        assert ledger_bytes(tmp_path) == before

    def test_commit_when_remote_moved_on(self, cloned, remote):
        """Test that a stale working copy must pull first."""
        engine, c1 = cloned
        root = engine.directory.root
        c2 = remote.push({**INITIAL_FILES, "z.txt": b"zulu"})
        (root / "a.txt").write_bytes(b"alpha edited")
        counts = (len(remote.blobs), len(remote.trees), len(remote.commits))
        before = ledger_bytes(root)

        with pytest.raises(StaleLocalError, match="pull"):
            engine.commit("Edit")

        assert (len(remote.blobs), len(remote.trees), len(remote.commits)) == counts
        assert remote.branches["master"] == c2
        assert ledger_bytes(root) == before
        assert engine.state.commit == c1

    def test_first_commit_to_empty_repository(self, remote, tmp_path, make_engine):
        """Test that an empty repository is bootstrapped on first commit."""
        (tmp_path / "a.txt").write_bytes(b"alpha")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "b.txt").write_bytes(b"bravo")
        engine = make_engine(remote, tmp_path)
        engine.link("octo/hello")

        result = engine.commit("First")

        assert remote.created_files == ["placeholder"]
        assert remote.files() == {"a.txt": b"alpha", "sub/b.txt": b"bravo"}
        parent = remote.commits[result.commit][1]
        assert remote.commits[parent] == (EMPTY_TREE_SHA, None)
        assert engine.state.commit == result.commit

    def test_commit_deleting_everything(self, cloned, remote):
        """Test that deleting all files commits the empty tree."""
        engine, _ = cloned
        root = engine.directory.root
        for path in INITIAL_FILES:
            (root / path).unlink()

        result = engine.commit("Delete all")

        assert remote.commits[result.commit][0] == EMPTY_TREE_SHA
        assert engine.ledgers.load_tree() == {}

    def test_commit_rejects_paths_with_spaces(self, cloned, remote):
        """Test that unencodable paths fail before anything is uploaded."""
        engine, _ = cloned
        (engine.directory.root / "my file.txt").write_bytes(b"x")
        blobs = dict(remote.blobs)

        with pytest.raises(LedgerFormatError, match="my file.txt"):
            engine.commit("Add")

        assert remote.blobs == blobs

    def test_commit_with_parallel_uploads(self, cloned, remote):
        """Test that parallel uploads give the same tree."""
        engine, _ = cloned
        engine.max_workers = 4
        root = engine.directory.root
        new_files = {f"f{i}.txt": f"file {i}".encode() for i in range(10)}
        for name, content in new_files.items():
            (root / name).write_bytes(content)

        result = engine.commit("Many files")

        assert remote.files() == {**INITIAL_FILES, **new_files}
        assert result.uploaded == sorted(new_files)

    def test_commit_reports_progress(self, remote, work_dir):
        """Test that commit steps are reported through the output formatter."""
        remote.push(INITIAL_FILES)
        output = Mock(spec=OutputFormatter)
        engine = SyncEngine(remote, LocalDirectory(work_dir), output=output)
        engine.clone("octo/hello")
        (work_dir / "a.txt").write_bytes(b"alpha edited")

        engine.commit("Edit")

        messages = [call.args[0] for call in output.info.call_args_list]
        assert "Creating commit..." in messages
        output.progress_message.assert_any_call("a.txt")


class TestStatus:
    """Tests for status."""

    def test_status_up_to_date(self, cloned):
        """Test a clean, current working copy."""
        engine, c1 = cloned
        status = engine.status()
        assert status.remote is RemoteCondition.UP_TO_DATE
        assert status.commit == c1
        assert status.branch == "master"
        assert not status.changes.has_changes

    def test_status_after_clone_with_unusual_characters(self, remote, work_dir, make_engine):
        """Test that paths with form feeds or separators stay readable."""
        remote.push({"a.txt": b"a", "notes\x1cold.txt": b"n", "x\x85y.txt": b"x"})
        make_engine(remote, work_dir).clone("octo/hello")

        engine = SyncEngine.open(
            work_dir, lambda repository: remote, output=OutputFormatter(quiet=True)
        )
        status = engine.status()

        assert status.remote is RemoteCondition.UP_TO_DATE
        assert not status.changes.has_changes
        assert status.changes.unchanged == {"a.txt", "notes\x1cold.txt", "x\x85y.txt"}

    def test_status_behind(self, cloned, remote):
        """Test a working copy behind the remote."""
        engine, _ = cloned
        remote.push({"a.txt": b"a"})
        assert engine.status().remote is RemoteCondition.BEHIND

    def test_status_branch_missing(self, cloned, remote):
        """Test a tracked branch that is gone remotely."""
        engine, _ = cloned
        remote.branches.clear()
        assert engine.status().remote is RemoteCondition.BRANCH_MISSING

    def test_status_remote_missing(self, cloned, remote):
        """Test a remote repository that is gone."""
        engine, _ = cloned
        remote.exists = False
        assert engine.status().remote is RemoteCondition.MISSING

    def test_status_remote_error_keeps_local_changes(self, cloned, remote):
        """Test that a failed remote check still reports local changes."""
        engine, _ = cloned
        (engine.directory.root / "x.txt").write_bytes(b"x")
        remote.repository_exists = Mock(side_effect=NetworkError("offline"))

        status = engine.status()

        assert status.remote is RemoteCondition.UNKNOWN
        assert "offline" in status.remote_error
        assert status.changes.added == {"x.txt"}


class TestReset:
    """Tests for reset."""

    def test_reset_everything(self, cloned):
        """Test that all local changes are discarded."""
        engine, _ = cloned
        root = engine.directory.root
        (root / "a.txt").write_bytes(b"alpha edited")
        (root / "b.txt").unlink()
        (root / "new" / "x.txt").parent.mkdir()
        (root / "new" / "x.txt").write_bytes(b"x")

        paths = engine.reset()

        assert paths == ["a.txt", "b.txt", "new/x.txt"]
        assert local_files(root) == INITIAL_FILES
        assert not (root / "new").exists()
        assert not local_changes(engine).has_changes

    def test_reset_with_glob(self, cloned):
        """Test that only matching paths are reset."""
        engine, _ = cloned
        root = engine.directory.root
        (root / "a.txt").write_bytes(b"alpha edited")
        (root / "docs" / "c.md").write_bytes(b"charlie edited")

        paths = engine.reset("*.md")

        assert paths == ["docs/c.md"]
        assert (root / "docs" / "c.md").read_bytes() == b"charlie"
        assert local_changes(engine).modified == {"a.txt"}

    def test_reset_deleted_file_by_name_ignoring_case(self, cloned):
        """Test that a deleted file can be restored by its exact name."""
        engine, _ = cloned
        root = engine.directory.root
        (root / "b.txt").unlink()

        assert engine.reset("B.TXT") == ["b.txt"]
        assert (root / "b.txt").read_bytes() == b"bravo"

    def test_reset_nothing_matches(self, cloned):
        """Test that a pattern without matches resets nothing."""
        engine, _ = cloned
        assert engine.reset("nothing*") == []


class TestBranches:
    """Tests for branch management."""

    def test_list_branches_sorted(self, cloned, remote):
        """Test that branch names are listed in order."""
        engine, c1 = cloned
        remote.branches["zeta"] = c1
        remote.branches["alpha"] = c1
        assert engine.list_branches() == ["alpha", "master", "zeta"]

    def test_create_branch_from_local_commit(self, cloned, remote):
        """Test that a new branch points to the synced commit."""
        engine, c1 = cloned
        remote.push({"a.txt": b"newer"})

        assert engine.create_branch("feature") == c1
        assert remote.branches["feature"] == c1

    def test_create_branch_from_base(self, cloned, remote):
        """Test that a base branch can be given."""
        engine, _ = cloned
        c2 = remote.push({"a.txt": b"a"}, branch="develop")

        assert engine.create_branch("feature", "develop") == c2

    def test_create_existing_branch_fails(self, cloned):
        """Test that branches are never overwritten."""
        engine, _ = cloned
        with pytest.raises(PreconditionError, match="already exists"):
            engine.create_branch("master")

    def test_create_branch_on_empty_repository(self, remote, tmp_path, make_engine):
        """Test that the first branch of an empty repository is bootstrapped."""
        engine = make_engine(remote, tmp_path)
        engine.link("octo/hello")

        commit = engine.create_branch("master")

        assert remote.branches["master"] == commit
        assert remote.commits[commit] == (EMPTY_TREE_SHA, None)

    def test_switch_branch(self, cloned, remote):
        """Test that switching mirrors the other branch and tracks it."""
        engine, _ = cloned
        develop_files = {"a.txt": b"alpha", "dev.txt": b"dev"}
        c2 = remote.push(develop_files, branch="develop")

        engine.switch_branch("develop", ConflictStrategy.OVERWRITE_WITH_REMOTE)

        assert local_files(engine.directory.root) == develop_files
        state = LedgerStore(engine.directory.root).load_state()
        assert (state.branch, state.commit) == ("develop", c2)

    def test_switch_to_branch_at_same_commit(self, cloned, remote):
        """Test switching to a branch pointing to the synced commit."""
        engine, c1 = cloned
        engine.create_branch("feature")

        result = engine.switch_branch("feature")

        assert result.up_to_date
        assert engine.state.branch == "feature"
        assert engine.state.commit == c1

    def test_switch_to_commit_sha(self, cloned, remote):
        """Test that a sha moves the working copy but keeps the branch."""
        engine, c1 = cloned
        remote.push({"a.txt": b"alpha 2"})
        engine.pull(ConflictStrategy.OVERWRITE_WITH_REMOTE)

        engine.switch_branch(c1, ConflictStrategy.OVERWRITE_WITH_REMOTE)

        assert local_files(engine.directory.root) == INITIAL_FILES
        assert engine.state.branch == "master"
        assert engine.state.commit == c1

    def test_switch_to_unknown_sha_fails(self, cloned):
        """Test that an unknown sha is refused."""
        engine, _ = cloned
        with pytest.raises(PreconditionError, match="No commit"):
            engine.switch_branch("0" * 40)

    def test_switch_to_current_branch_fails(self, cloned):
        """Test that switching to the tracked branch is refused."""
        engine, _ = cloned
        with pytest.raises(UpToDateError):
            engine.switch_branch("master")

    def test_switch_to_missing_branch_fails(self, cloned):
        """Test that the target branch must exist."""
        engine, _ = cloned
        with pytest.raises(BranchMissingError):
            engine.switch_branch("nope")

    def test_delete_branch(self, cloned, remote):
        """Test deleting another branch needs no confirmation."""
        engine, c1 = cloned
        remote.branches["old"] = c1
        confirm = Mock(return_value=False)

        assert engine.delete_branch("old", confirm=confirm) is True
        assert "old" not in remote.branches
        confirm.assert_not_called()

    def test_delete_current_branch_asks(self, cloned, remote):
        """Test that deleting the tracked branch asks first."""
        engine, _ = cloned
        confirm = Mock(return_value=False)

        assert engine.delete_branch("master", confirm=confirm) is False
        assert "master" in remote.branches
        confirm.assert_called_once_with("master")

    def test_delete_missing_branch_fails(self, cloned):
        """Test that the branch must exist."""
        engine, _ = cloned
        with pytest.raises(BranchMissingError):
            engine.delete_branch("nope")

    def test_merge(self, cloned, remote):
        """Test that merges happen remotely only."""
        engine, c1 = cloned
        remote.branches["feature"] = c1
        remote.push({**INITIAL_FILES, "f.txt": b"f"}, branch="feature")
        files = local_files(engine.directory.root)

        sha = engine.merge("feature", "master", "Merge feature")

        assert remote.branches["master"] == sha
        assert local_files(engine.directory.root) == files

    def test_merge_requires_both_branches(self, cloned):
        """Test that both branches are validated."""
        engine, _ = cloned
        with pytest.raises(BranchMissingError, match="nope"):
            engine.merge("nope", "master")


class TestOpenAndUnlink:
    """Tests for opening and unlinking working copies."""

    def test_open_from_subdirectory(self, cloned, remote):
        """Test that the working copy root is found from inside it."""
        engine, c1 = cloned
        factory = Mock(return_value=remote)

        opened = SyncEngine.open(engine.directory.root / "docs", factory)

        factory.assert_called_once_with("octo/hello")
        assert opened.directory.root == engine.directory.root.resolve()
        assert opened.state.commit == c1

    def test_open_unlinked_directory(self, tmp_path):
        """Test that opening needs a linked directory."""
        with pytest.raises(NotLinkedError):
            SyncEngine.open(tmp_path, Mock())

    def test_unlink_keeps_files(self, cloned):
        """Test that unlinking only removes the metadata."""
        engine, _ = cloned
        root = engine.directory.root

        engine.unlink()

        assert not (root / ".ghsync").exists()
        assert local_files(root) == INITIAL_FILES
        assert engine.state is None
        with pytest.raises(NotLinkedError):
            engine.unlink()
