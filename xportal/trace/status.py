"""Bottom-up status aggregation over fetched dependencies."""

from __future__ import annotations

from collections.abc import Iterable

from xportal.models.resources import FetchedResource, PropagatedStatus


def propagate_status(dependencies: Iterable[FetchedResource]) -> PropagatedStatus:
    """Ready/Synced are true iff every direct dependency reports the condition True.

    Both are vacuously true when there are no dependencies.
    """
    deps = list(dependencies)
    return PropagatedStatus(
        ready=all(d.ready for d in deps),
        synced=all(d.synced for d in deps),
    )
