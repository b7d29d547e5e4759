"""
Repository Tree Schemas
"""

from typing import List, Optional, Literal
from pydantic import BaseModel

EntryKind = Literal["dir", "file", "symlink", "submodule", "other"]


class TreeEntry(BaseModel):
    kind: EntryKind
    name: str
    size: Optional[int] = None


class TreeResponse(BaseModel):
    ref: str
    path: str
    is_empty_repo: bool
    entries: List[TreeEntry]
