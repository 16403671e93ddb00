"""Build navigable virtual trees from flat placements."""

from __future__ import annotations

import logging
import time
import unicodedata
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from rich.text import Text
from rich.tree import Tree

from taxonomist.planner.models import FileCard, PlannerOutput

from .models import TreeStats, VirtualNode

LOGGER = logging.getLogger(__name__)

ROOT_ID = "root"
ROOT_NAME = "Virtual Files"
ROOT_PATH = "/"
LARGE_TREE_LOG_THRESHOLD = 1000


class Placed(Protocol):
    """Anything carrying a virtual path, such as a stored placement record."""

    virtual_path: str


def split_virtual_path(virtual_path: str) -> List[str]:
    """Return the non-empty segments of ``virtual_path``."""
    return [segment for segment in virtual_path.split("/") if segment]


def _new_root() -> VirtualNode:
    return VirtualNode(id=ROOT_ID, name=ROOT_NAME, path=ROOT_PATH, type="folder")


def _folder(path: str, name: str) -> VirtualNode:
    return VirtualNode(id=f"folder:{path}", name=name, path=path, type="folder")


def collation_key(name: str) -> str:
    """Return ``name`` folded for base-letter comparison (``"Élan"`` sorts as ``"elan"``)."""
    decomposed = unicodedata.normalize("NFKD", name.casefold())
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def _sort_key(node: VirtualNode) -> Tuple[int, str, str]:
    return (0 if node.is_folder else 1, collation_key(node.name), node.name)


class VirtualTreeBuilder:
    """Convert ``file -> virtual path`` assignments into a :class:`VirtualNode` tree.

    Every built tree is sorted (folders first, then case- and accent-insensitive
    name order) and carries a cached ``file_count`` on each
    folder. The builder never mutates the placements it is given.
    """

    def build(
        self,
        outputs: Iterable[PlannerOutput],
        records_by_file_id: Mapping[str, FileCard],
    ) -> VirtualNode:
        """Build the full tree for ``outputs``.

        Args:
            outputs: Placements to insert.
            records_by_file_id: File cards keyed by ``file_id``; outputs
                without a card are skipped with a warning.

        Returns:
            VirtualNode: Root folder of the tree.
        """

        root = _new_root()
        folders: Dict[str, VirtualNode] = {ROOT_PATH: root}
        inserted = 0
        for output in outputs:
            record = records_by_file_id.get(output.file_id)
            if record is None:
                LOGGER.warning("File record not found for file_id %s", output.file_id)
                continue
            if self._insert(folders, output, record):
                inserted += 1

        started = time.perf_counter()
        self._sort(root)
        self._count(root)
        if inserted > LARGE_TREE_LOG_THRESHOLD:
            LOGGER.info(
                "Sorted and counted tree of %d files in %.1f ms",
                inserted,
                (time.perf_counter() - started) * 1000,
            )
        return root

    def build_top_level_only(self, placements: Iterable[Placed], total_count: int) -> VirtualNode:
        """Build only the first level of folders.

        Folder counts come from ``placements``; the root count is
        ``total_count`` as supplied by the caller. Folders have no children;
        deeper levels are loaded on demand.
        """

        root = _new_root()
        top_level: Dict[str, VirtualNode] = {}
        counts: Dict[str, int] = {}
        for placement in placements:
            segments = split_virtual_path(placement.virtual_path)
            if len(segments) < 2:
                continue
            name = segments[0]
            path = f"/{name}"
            counts[path] = counts.get(path, 0) + 1
            if path not in top_level:
                folder = _folder(path, name)
                top_level[path] = folder
                root.children.append(folder)

        for folder in root.children:
            folder.file_count = counts.get(folder.path, 0)
        root.children.sort(key=_sort_key)
        root.file_count = total_count
        return root

    # ------------------------------------------------------------------ #
    # Queries                                                            #
    # ------------------------------------------------------------------ #

    def get_node_by_path(self, root: VirtualNode, virtual_path: str) -> Optional[VirtualNode]:
        """Return the node at ``virtual_path`` or ``None`` when a segment is missing.

        Virtual paths are not unique: two files with the same name placed in the
        same folder share one path, and only the first of them in sorted order
        is returned. Use :meth:`flatten` to reach every file node.
        """

        node = root
        for segment in split_virtual_path(virtual_path):
            child = next((c for c in node.children if c.name == segment), None)
            if child is None:
                return None
            node = child
        return node

    def get_children(self, root: VirtualNode, virtual_path: str) -> List[VirtualNode]:
        """Return the children of the folder at ``virtual_path``, or an empty list."""
        node = self.get_node_by_path(root, virtual_path)
        if node is None or not node.is_folder:
            return []
        return list(node.children)

    def flatten(self, root: VirtualNode) -> List[VirtualNode]:
        """Return every file node in depth-first order."""
        files: List[VirtualNode] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if not node.is_folder:
                files.append(node)
            stack.extend(reversed(node.children))
        return files

    def get_stats(self, root: VirtualNode) -> TreeStats:
        folders = files = max_depth = 0
        stack = [(root, 0)]
        while stack:
            node, depth = stack.pop()
            if node.is_folder:
                folders += 1
            else:
                files += 1
            max_depth = max(max_depth, depth)
            stack.extend((child, depth + 1) for child in node.children)
        return TreeStats(total_folders=folders, total_files=files, max_depth=max_depth)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _insert(
        self, folders: Dict[str, VirtualNode], output: PlannerOutput, record: FileCard
    ) -> bool:
        segments = split_virtual_path(output.virtual_path)
        if not segments:
            LOGGER.warning("Skipping %s with empty virtual path", output.file_id)
            return False

        node = folders[ROOT_PATH]
        path = ""
        for segment in segments[:-1]:
            path = f"{path}/{segment}"
            child = folders.get(path)
            if child is None:
                child = _folder(path, segment)
                folders[path] = child
                node.children.append(child)
            node = child

        node.children.append(
            VirtualNode(
                id=f"file:{record.file_id}",
                name=segments[-1],
                path=output.virtual_path,
                type="file",
                file_record=record,
                placement=output,
            )
        )
        return True

    def _sort(self, node: VirtualNode) -> None:
        node.children.sort(key=_sort_key)
        for child in node.children:
            if child.is_folder:
                self._sort(child)

    def _count(self, node: VirtualNode) -> int:
        if not node.is_folder:
            return 1
        total = sum(self._count(child) for child in node.children)
        node.file_count = total
        return total


def render_tree(root: VirtualNode, max_depth: Optional[int] = None) -> Tree:
    """Return a :class:`rich.tree.Tree` for ``root``, down to ``max_depth`` levels."""

    def label(node: VirtualNode) -> Text:
        if node.is_folder:
            text = Text(node.name, style="bold cyan")
            text.append(f" ({node.file_count or 0} files)", style="dim")
            return text
        text = Text(node.name)
        if node.placement is not None:
            text.append(f"  {node.placement.confidence:.2f}", style="dim")
        return text

    def add(branch: Tree, node: VirtualNode, depth: int) -> None:
        if max_depth is not None and depth >= max_depth:
            return
        for child in node.children:
            add(branch.add(label(child)), child, depth + 1)

    tree = Tree(label(root))
    add(tree, root, 0)
    return tree


__all__ = ["VirtualTreeBuilder", "collation_key", "render_tree", "split_virtual_path", "ROOT_NAME"]
