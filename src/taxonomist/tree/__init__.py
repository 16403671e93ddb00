"""Virtual folder tree construction."""

from .builder import ROOT_NAME, VirtualTreeBuilder, render_tree, split_virtual_path
from .models import TreeStats, VirtualNode

__all__ = [
    "ROOT_NAME",
    "TreeStats",
    "VirtualNode",
    "VirtualTreeBuilder",
    "render_tree",
    "split_virtual_path",
]
