"""Wanted/unwanted file selection for multi-file torrents."""

import fnmatch
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from ..workflow.models import TorrentDescriptor


@dataclass
class FileNode:
    """A directory or file in the selection tree."""

    name: str
    path: str  # full path within the torrent, "/" separated
    index: int | None = None  # manifest index, None for directories
    length: int = 0
    wanted: bool = True
    children: dict[str, "FileNode"] = field(default_factory=dict)

    @property
    def is_leaf(self) -> bool:
        return self.index is not None

    def leaves(self) -> Iterator["FileNode"]:
        if self.is_leaf:
            yield self
            return
        for child in self.children.values():
            yield from child.leaves()

    @property
    def size(self) -> int:
        """Total bytes under this node."""
        return sum(leaf.length for leaf in self.leaves())


class FileTree:
    """
    Selection tree built from a torrent manifest.

    Leaves are the manifest entries, keyed by their position in the manifest,
    which is the file index the daemon uses for files-unwanted.
    """

    def __init__(self):
        self.root = FileNode(name="", path="")

    @classmethod
    def from_descriptor(cls, descriptor: "TorrentDescriptor") -> "FileTree":
        """Build a tree from a descriptor's manifest.

        Raises:
            ValueError: If the descriptor carries no manifest
        """
        if descriptor.manifest is None:
            raise ValueError(f"No file list available for {descriptor.name or 'torrent'}")

        tree = cls()
        for index, entry in enumerate(descriptor.manifest):
            tree._insert(entry.name, index, entry.length)
        return tree

    def _insert(self, path: str, index: int, length: int) -> None:
        parts = [p for p in path.split("/") if p]
        node = self.root
        for depth, part in enumerate(parts):
            child_path = "/".join(parts[: depth + 1])
            if depth == len(parts) - 1:
                node.children[part] = FileNode(name=part, path=child_path, index=index, length=length)
            else:
                node = node.children.setdefault(part, FileNode(name=part, path=child_path))

    def leaves(self) -> Iterator[FileNode]:
        return self.root.leaves()

    def find(self, path: str) -> FileNode | None:
        """Find a node by its path within the torrent."""
        node = self.root
        for part in (p for p in path.split("/") if p):
            node = node.children.get(part)
            if node is None:
                return None
        return node

    def set_subtree_wanted(self, node: FileNode, wanted: bool) -> None:
        """Mark a node and everything below it wanted or unwanted."""
        node.wanted = wanted
        for child in node.children.values():
            self.set_subtree_wanted(child, wanted)

    def set_all_wanted(self, wanted: bool) -> None:
        self.set_subtree_wanted(self.root, wanted)

    def select(self, patterns: list[str], wanted: bool) -> int:
        """Set wanted state for files matching glob patterns.

        Args:
            patterns: Glob patterns matched against file names, leaf paths
                and directory paths (e.g., ["*.nfo", "Extras"])
            wanted: State to apply to matching subtrees

        Returns:
            Number of files changed
        """
        changed = 0
        for node in self._walk(self.root):
            if node is self.root:
                continue
            if any(fnmatch.fnmatch(node.name, p) or fnmatch.fnmatch(node.path, p) for p in patterns):
                for leaf in node.leaves():
                    if leaf.wanted != wanted:
                        changed += 1
                self.set_subtree_wanted(node, wanted)
        return changed

    def _walk(self, node: FileNode) -> Iterator[FileNode]:
        yield node
        for child in node.children.values():
            yield from self._walk(child)

    def unwanted_indices(self) -> list[int]:
        """List manifest indices of unwanted files in ascending order."""
        return sorted(leaf.index for leaf in self.leaves() if not leaf.wanted)

    def wanted_size(self) -> int:
        return sum(leaf.length for leaf in self.leaves() if leaf.wanted)
