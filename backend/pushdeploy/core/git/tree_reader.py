"""
Repository Tree Reader

Lists the immediate children of one directory at one ref. Only the tree
objects on the requested path are read; blob sizes come from object
headers, never from blob contents.
"""

import asyncio
import logging
import posixpath
from pathlib import Path
from typing import List, Optional

from git import Repo
from git.exc import BadName
from git.objects import Tree

from pushdeploy.db.schemas.tree import TreeEntry, TreeResponse
from pushdeploy.utils.exceptions import NotFoundError, ValidationException

logger = logging.getLogger(__name__)

MODE_DIR = 0o040000
MODE_SYMLINK = 0o120000
MODE_SUBMODULE = 0o160000
FILE_MODES = (0o100644, 0o100755, 0o100664)

KIND_RANK = {"dir": 0, "file": 1, "symlink": 2, "submodule": 3, "other": 4}


def kind_of(mode: int) -> str:
    if mode == MODE_DIR:
        return "dir"
    if mode in FILE_MODES:
        return "file"
    if mode == MODE_SYMLINK:
        return "symlink"
    if mode == MODE_SUBMODULE:
        return "submodule"
    return "other"


def normalize_path(path: Optional[str]) -> str:
    """'/src//app/' -> 'src/app'; rejects traversal"""
    parts = [p for p in (path or "").split("/") if p and p != "."]
    if any(p == ".." for p in parts):
        raise ValidationException(f"Invalid path: {path!r}")
    return "/".join(parts)


class TreeReader:
    """Browse a bare repository without checking it out"""

    def list(self, repo_path: Path, ref: Optional[str] = None, path: Optional[str] = None) -> TreeResponse:
        """
        List one directory

        Raises:
            ValidationException: Unknown ref, or path is not a directory
            NotFoundError: Path does not exist at that ref
        """
        path = normalize_path(path)
        ref = ref or "HEAD"
        if ref.startswith("-"):
            raise ValidationException(f"Invalid ref: {ref!r}")

        with Repo(repo_path) as repo:
            if not repo.head.is_valid() and not repo.refs:
                return TreeResponse(
                    ref=ref,
                    path=path,
                    is_empty_repo=True,
                    entries=[],
                )

            if ref == "HEAD":
                if not repo.head.is_valid():
                    raise ValidationException("HEAD does not point at a commit")
                commit = repo.head.commit
            else:
                try:
                    commit = repo.commit(ref)
                except (BadName, ValueError):
                    raise ValidationException(f"Unknown ref: {ref}")

            tree = commit.tree
            if path:
                try:
                    tree = tree / path
                except KeyError:
                    raise NotFoundError(f"Path not found: {path}", resource_type="path")
                if not isinstance(tree, Tree):
                    raise ValidationException(f"Not a directory: {path}")

            entries = [self._entry(item) for item in tree]

        entries.sort(key=lambda e: (KIND_RANK[e.kind], e.name.lower()))
        return TreeResponse(ref=ref, path=path, is_empty_repo=False, entries=entries)

    async def list_async(self, repo_path: Path, ref: Optional[str] = None, path: Optional[str] = None) -> TreeResponse:
        return await asyncio.to_thread(self.list, repo_path, ref, path)

    @staticmethod
    def _entry(item) -> TreeEntry:
        kind = kind_of(item.mode)
        name = posixpath.basename(item.path)
        if kind == "file":
            return TreeEntry(kind=kind, name=name, size=item.size)
        return TreeEntry(kind=kind, name=name)
