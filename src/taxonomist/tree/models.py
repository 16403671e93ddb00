"""Virtual tree node types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

from taxonomist.planner.models import FileCard, PlannerOutput

NodeType = Literal["folder", "file"]


@dataclass(slots=True)
class VirtualNode:
    """A folder or file in the virtual tree.

    Attributes:
        id: ``root``, ``folder:<path>`` or ``file:<file_id>``.
        name: Last path segment.
        path: Absolute virtual path.
        type: ``"folder"`` or ``"file"``.
        children: Child nodes; always empty for files.
        file_record: Card of the file, for file nodes.
        placement: Placement the node was built from, for file nodes.
        file_count: Number of files beneath a folder, cached when the tree is built.
    """

    id: str
    name: str
    path: str
    type: NodeType
    children: List["VirtualNode"] = field(default_factory=list)
    file_record: Optional[FileCard] = None
    placement: Optional[PlannerOutput] = None
    file_count: Optional[int] = None

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"


@dataclass(frozen=True, slots=True)
class TreeStats:
    """Folder, file and depth totals for a tree; the root counts as a folder."""

    total_folders: int
    total_files: int
    max_depth: int


__all__ = ["NodeType", "VirtualNode", "TreeStats"]
