"""Match artifact slots declared by the dashboard to local files."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from omnireporter.models import (
    ArtifactDescriptor,
    PendingUpload,
    ReconcileResult,
    UploadTarget,
)

logger = logging.getLogger(__name__)


def reconcile(
    declared: Sequence[UploadTarget], local: Sequence[ArtifactDescriptor]
) -> ReconcileResult:
    """Pair every declared upload target with a local artifact of the same name.

    Each local descriptor is used at most once, the first unused one with a
    matching name and a local path wins. Targets left without a match are
    returned as unmatched and logged as warnings; the dashboard may declare
    a slot the run never filled.

    Args:
        declared: Upload targets from the dashboard response.
        local: Artifacts the test run produced.

    Returns:
        Matched pairs and declared-but-missing targets.
    """
    consumed: set[int] = set()
    matched: list[PendingUpload] = []
    unmatched: list[UploadTarget] = []

    for target in declared:
        index = next(
            (
                i
                for i, descriptor in enumerate(local)
                if i not in consumed
                and descriptor.is_available
                and descriptor.name == target.name
            ),
            None,
        )
        if index is None:
            logger.warning(
                "%s %r declared by the dashboard was not found locally",
                target.kind.value.capitalize(),
                target.name,
            )
            unmatched.append(target)
            continue
        consumed.add(index)
        matched.append(PendingUpload(descriptor=local[index], target=target))

    return ReconcileResult(matched=matched, unmatched=unmatched)
