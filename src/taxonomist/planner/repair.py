"""Structural repair of generated taxonomy plans."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence

from .constants import FALLBACK_FOLDER_ID, FALLBACK_FOLDER_PATH, FALLBACK_RULE_ID
from .models import PlacementRule, TaxonomyPlan, VirtualFolderSpec

LOGGER = logging.getLogger(__name__)

_REPEATED_SLASHES = re.compile(r"/{2,}")


def normalize_folder_path(path: str) -> str:
    """Return ``path`` as an absolute virtual folder path.

    Backslashes become forward slashes, a leading slash is ensured, repeated
    and trailing slashes are removed, and an empty result maps to ``/Other``.
    """

    cleaned = _REPEATED_SLASHES.sub("/", path.strip().replace("\\", "/")).strip("/")
    if not cleaned:
        return FALLBACK_FOLDER_PATH
    return "/" + cleaned


def find_fallback_folder(folders: Sequence[VirtualFolderSpec]) -> Optional[VirtualFolderSpec]:
    """Return the folder unresolved rules should target, if any exists.

    A folder whose path is or ends with ``/Other`` wins; otherwise the first folder.
    """

    for folder in folders:
        lowered = folder.path.lower()
        if lowered == FALLBACK_FOLDER_PATH.lower() or lowered.endswith(
            FALLBACK_FOLDER_PATH.lower()
        ):
            return folder
    return folders[0] if folders else None


def repair_plan(plan: TaxonomyPlan) -> TaxonomyPlan:
    """Return a copy of ``plan`` in which every rule targets an existing folder.

    Folder paths are normalized and duplicate folder ids dropped (the first one
    wins). Each rule target is resolved exactly, then case-insensitively, then
    redirected to the fallback folder. When a rule needs a fallback and the plan
    has no folders at all, an ``/Other`` folder and catch-all rule are added.
    Every change is logged as a warning. Repairing a repaired plan is a no-op.
    """

    folders: List[VirtualFolderSpec] = []
    seen_ids: set[str] = set()
    for folder in plan.folders:
        if folder.id in seen_ids:
            LOGGER.warning("Dropping duplicate folder id %r (%s)", folder.id, folder.path)
            continue
        seen_ids.add(folder.id)
        path = normalize_folder_path(folder.path)
        if path != folder.path:
            LOGGER.warning("Normalized folder %r path %r -> %r", folder.id, folder.path, path)
            folder = folder.model_copy(update={"path": path})
        folders.append(folder)

    lowered_ids: Dict[str, str] = {}
    for folder in folders:
        lowered_ids.setdefault(folder.id.lower(), folder.id)

    rules: List[PlacementRule] = []
    synthesized = False
    for rule in plan.rules:
        target = rule.target_folder_id
        if target in seen_ids:
            rules.append(rule)
            continue

        resolved = lowered_ids.get(target.lower())
        if resolved is None:
            fallback = find_fallback_folder(folders)
            if fallback is None:
                fallback = VirtualFolderSpec(
                    id=FALLBACK_FOLDER_ID,
                    path=FALLBACK_FOLDER_PATH,
                    description="Files that did not fit any other folder.",
                )
                folders.append(fallback)
                seen_ids.add(fallback.id)
                lowered_ids[fallback.id.lower()] = fallback.id
                synthesized = True
                LOGGER.warning("Plan has no folders; created fallback folder %s", fallback.path)
            resolved = fallback.id
            LOGGER.warning(
                "Rule %r targets unknown folder %r; redirecting to %r", rule.id, target, resolved
            )
        else:
            LOGGER.warning(
                "Rule %r targets %r; resolved case-insensitively to %r", rule.id, target, resolved
            )
        rules.append(rule.model_copy(update={"target_folder_id": resolved}))

    if synthesized:
        rules.append(
            PlacementRule(
                id=FALLBACK_RULE_ID,
                target_folder_id=FALLBACK_FOLDER_ID,
                priority=0,
                reason_template="Placed in /Other by fallback taxonomy rule.",
            )
        )

    return TaxonomyPlan(folders=folders, rules=rules)


__all__ = ["normalize_folder_path", "find_fallback_folder", "repair_plan"]
