"""Tests for the repository tree reader."""

import pytest
from git import Repo

from pushdeploy.core.git.tree_reader import TreeReader, kind_of, normalize_path
from pushdeploy.utils.exceptions import NotFoundError, ValidationException

from conftest import AUTHOR, commit_files, push


@pytest.fixture
def bare(repo_store):
    return repo_store.path_for("alice", "site")


@pytest.fixture
async def populated(repo_store, bare, tmp_path):
    await repo_store.create("alice", "site")
    work = tmp_path / "work"
    commit_files(work, {
        "README.md": "# site\n",
        "app.py": "print('hi')\n",
        "src/main.py": "x = 1\n",
        "docs/guide.md": "guide\n",
        "Zeta.txt": "z",
        "alpha.txt": "abc",
    })
    with Repo(work) as repo:
        (work / "link").symlink_to("README.md")
        repo.index.add(["link"])
        repo.index.commit("add link", author=AUTHOR, committer=AUTHOR)
    push(work, bare)
    return bare


class TestHelpers:

    @pytest.mark.parametrize("mode,kind", [
        (0o040000, "dir"),
        (0o100644, "file"),
        (0o100755, "file"),
        (0o120000, "symlink"),
        (0o160000, "submodule"),
        (0o000000, "other"),
    ])
    def test_kind_of(self, mode, kind):
        assert kind_of(mode) == kind

    def test_normalize_path(self):
        assert normalize_path("/src//app/") == "src/app"
        assert normalize_path(None) == ""
        assert normalize_path("./src") == "src"

    def test_normalize_rejects_traversal(self):
        with pytest.raises(ValidationException):
            normalize_path("src/../../etc")


class TestTreeReader:

    async def test_empty_repository(self, repo_store, bare):
        await repo_store.create("alice", "site")
        result = TreeReader().list(bare)

        assert result.is_empty_repo is True
        assert result.entries == []
        assert result.ref == "HEAD"

    async def test_root_listing_is_sorted_dirs_first(self, populated):
        result = await TreeReader().list_async(populated)

        assert result.is_empty_repo is False
        assert result.ref == "HEAD"
        names = [(e.kind, e.name) for e in result.entries]
        assert names == [
            ("dir", "docs"),
            ("dir", "src"),
            ("file", "alpha.txt"),
            ("file", "app.py"),
            ("file", "README.md"),
            ("file", "Zeta.txt"),
            ("symlink", "link"),
        ]

    async def test_file_sizes_and_no_recursion(self, populated):
        result = TreeReader().list(populated)
        by_name = {e.name: e for e in result.entries}

        assert by_name["alpha.txt"].size == 3
        assert by_name["src"].size is None
        assert "main.py" not in by_name

    async def test_subdirectory(self, populated):
        result = TreeReader().list(populated, path="src")

        assert result.path == "src"
        assert [e.name for e in result.entries] == ["main.py"]

    async def test_explicit_ref(self, populated):
        with Repo(populated) as repo:
            sha = repo.heads.master.commit.hexsha

        result = TreeReader().list(populated, ref=sha)
        assert result.ref == sha
        assert len(result.entries) == 7

    async def test_ref_is_echoed_as_given(self, populated):
        assert TreeReader().list(populated, ref="master").ref == "master"
        assert TreeReader().list(populated, ref="HEAD").ref == "HEAD"

    async def test_unknown_ref(self, populated):
        with pytest.raises(ValidationException):
            TreeReader().list(populated, ref="no-such-branch")

    async def test_missing_path(self, populated):
        with pytest.raises(NotFoundError):
            TreeReader().list(populated, path="nope")

    async def test_path_is_a_file(self, populated):
        with pytest.raises(ValidationException):
            TreeReader().list(populated, path="README.md")
