"""File discovery and card construction."""

from .cards import build_file_card, compute_file_id
from .discovery import STATE_DIRNAME, DirectoryScanner
from .models import PendingFile

__all__ = [
    "DirectoryScanner",
    "PendingFile",
    "STATE_DIRNAME",
    "build_file_card",
    "compute_file_id",
]
