"""Tests for branch graph operations."""

from datetime import datetime, timezone

import pytest

from src.branch_graph import (
    MAIN_BRANCH,
    BranchGraph,
    BranchInfo,
    ProjectState,
    WorkingFileInfo,
    check_invariants,
    compute_commit_hash,
    format_version_id,
    validate_branch_name,
)
from src.content_store import SnapshotRef
from src.core.errors import (
    DuplicateNameError,
    HasUncommittedChangesError,
    InvalidNameError,
    InvalidParentError,
    NotFoundError,
    ProtectedBranchError,
)

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def snapshot(branch="main", digest="a" * 64, size=10):
    return SnapshotRef(branch=branch, digest=digest, size_bytes=size)


def working(dirty=False, exists=True):
    return WorkingFileInfo(exists=exists, path="/tmp/model.edb", has_unsaved_changes=dirty)


@pytest.fixture
def state():
    return ProjectState(
        project_name="Tower A",
        project_path="/projects/tower-a",
        created=NOW,
        last_modified=NOW,
        branches={MAIN_BRANCH: BranchInfo(name=MAIN_BRANCH, created=NOW)},
    )


@pytest.fixture
def graph(state):
    graph = BranchGraph(state)
    graph.append_version(MAIN_BRANCH, snapshot(), "Initial design", NOW)
    return graph


class TestValidateBranchName:
    """Tests for branch name rules."""

    @pytest.mark.parametrize("name", ["steel-columns", "option_2", "v2.1", "A"])
    def test_valid(self, name):
        assert validate_branch_name(name) == name

    def test_strips_whitespace(self):
        assert validate_branch_name("  steel  ") == "steel"

    @pytest.mark.parametrize("name", ["", "   ", "-lead", "has space", "a/b", "..", "x" * 65, "trail."])
    def test_invalid(self, name):
        with pytest.raises(InvalidNameError):
            validate_branch_name(name)


class TestAppendVersion:
    """Tests for version allocation."""

    def test_sequential_ids(self, graph):
        second = graph.append_version(MAIN_BRANCH, snapshot(digest="b" * 64), "Second", NOW)
        branch = graph.get_branch(MAIN_BRANCH)

        assert [v.id for v in branch.versions] == ["v1", "v2"]
        assert second.sequence == 2
        assert branch.latest_version == "v2"
        assert branch.next_sequence == 3

    def test_ids_never_reused(self, graph):
        branch = graph.get_branch(MAIN_BRANCH)
        graph.append_version(MAIN_BRANCH, snapshot(), "Second", NOW)
        branch.versions.pop()
        branch.latest_version = "v1"

        third = graph.append_version(MAIN_BRANCH, snapshot(), "Third", NOW)
        assert third.id == "v3"

    def test_commit_hash_and_size(self, graph):
        version = graph.get_branch(MAIN_BRANCH).versions[0]
        assert version.file_size == 10
        assert version.commit_hash == compute_commit_hash(
            MAIN_BRANCH, "v1", version.snapshot, None, NOW, "Initial design"
        )
        assert len(version.commit_hash) == 40

    def test_unknown_branch(self, graph):
        with pytest.raises(NotFoundError):
            graph.append_version("ghost", snapshot(), "msg", NOW)


class TestCreateBranch:
    """Tests for branch creation."""

    def test_creates_with_lineage(self, graph):
        branch = graph.create_branch("steel-columns", MAIN_BRANCH, "v1", NOW, working(), "Steel")

        assert branch.parent_branch == MAIN_BRANCH
        assert branch.parent_version == "v1"
        assert branch.versions == []
        assert branch.latest_version is None
        assert branch.description == "Steel"

    def test_duplicate_name(self, graph):
        graph.create_branch("alt", MAIN_BRANCH, "v1", NOW, working())
        with pytest.raises(DuplicateNameError):
            graph.create_branch("alt", MAIN_BRANCH, "v1", NOW, working())

    def test_main_is_taken(self, graph):
        with pytest.raises(DuplicateNameError):
            graph.create_branch("main", MAIN_BRANCH, "v1", NOW, working())

    def test_missing_parent_version_leaves_graph_unchanged(self, graph, state):
        before = state.model_copy(deep=True)
        with pytest.raises(InvalidParentError):
            graph.create_branch("alt", MAIN_BRANCH, "v9", NOW, working())
        assert state == before

    def test_missing_parent_branch(self, graph):
        with pytest.raises(InvalidParentError):
            graph.create_branch("alt", "ghost", "v1", NOW, working())

    def test_invalid_name(self, graph):
        with pytest.raises(InvalidNameError):
            graph.create_branch("bad name", MAIN_BRANCH, "v1", NOW, working())


class TestDeleteBranch:
    """Tests for branch deletion."""

    @pytest.mark.parametrize("force", [False, True])
    def test_main_is_protected(self, graph, force):
        with pytest.raises(ProtectedBranchError):
            graph.delete_branch(MAIN_BRANCH, force=force)

    def test_unknown(self, graph):
        with pytest.raises(NotFoundError):
            graph.delete_branch("ghost")

    def test_dirty_working_file_blocks(self, graph):
        graph.create_branch("alt", MAIN_BRANCH, "v1", NOW, working(dirty=True))
        with pytest.raises(HasUncommittedChangesError):
            graph.delete_branch("alt")
        assert "alt" in graph.state.branches

    def test_force_overrides_dirty(self, graph):
        graph.create_branch("alt", MAIN_BRANCH, "v1", NOW, working(dirty=True))
        graph.append_version("alt", snapshot("alt"), "one", NOW)

        deleted = graph.delete_branch("alt", force=True)
        assert deleted == ["v1"]
        assert "alt" not in graph.state.branches

    def test_current_branch_falls_back_to_main(self, graph):
        graph.create_branch("alt", MAIN_BRANCH, "v1", NOW, working())
        graph.state.current_branch = "alt"

        graph.delete_branch("alt")
        assert graph.state.current_branch == MAIN_BRANCH

    def test_children_keep_parent_name(self, graph):
        graph.create_branch("alt", MAIN_BRANCH, "v1", NOW, working())
        graph.append_version("alt", snapshot("alt"), "one", NOW)
        graph.create_branch("child", "alt", "v1", NOW, working())

        graph.delete_branch("alt")
        assert graph.get_branch("child").parent_branch == "alt"
        assert check_invariants(graph.state) == []


class TestResolveVersion:
    """Tests for version lookup."""

    def test_found(self, graph):
        assert graph.resolve_version(MAIN_BRANCH, "v1").message == "Initial design"

    def test_missing(self, graph):
        with pytest.raises(NotFoundError):
            graph.resolve_version(MAIN_BRANCH, "v2")


class TestInvariants:
    """Tests for the structural invariant checker."""

    def test_consistent_state(self, graph):
        assert check_invariants(graph.state) == []

    def test_detects_stale_latest_version(self, graph):
        graph.get_branch(MAIN_BRANCH).latest_version = None
        problems = check_invariants(graph.state)
        assert any("latest_version" in p for p in problems)

    def test_detects_missing_current_branch(self, graph):
        graph.state.current_branch = "ghost"
        assert any("current branch" in p for p in check_invariants(graph.state))

    def test_format_version_id(self):
        assert format_version_id(12) == "v12"
