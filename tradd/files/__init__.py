"""File selection for torrents being added."""

from .tree import FileNode, FileTree

__all__ = [
    "FileNode",
    "FileTree",
]
