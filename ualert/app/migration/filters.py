"""
filters.py — Receiver Filter: what an alert must route to explicitly.

    resolved = names of the alert's channels (set, any key form)

    resolved empty or resolved ⊆ defaults  →  None
                                              (no contact label; the root
                                              route already covers it)
    otherwise                               →  resolved ∪ defaults

Default receivers are carried into a non-empty result because once an
override route matches, the root route's own receiver no longer fires
for that alert.

``None`` and an empty set are different answers: ``None`` means "defer
to the default route"; this function never returns an empty set.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, FrozenSet, Optional, Sequence

from ualert.app.migration.models import ChannelRef, MigrationIndex
from ualert.app.migration.routes import resolve_receivers

logger = logging.getLogger(__name__)


def filter_receivers_for_alert(
    alert_id: int,
    channel_refs: Sequence[ChannelRef],
    index: MigrationIndex,
    default_receivers: AbstractSet[str],
) -> Optional[FrozenSet[str]]:
    """
    Receiver names an alert needs routed explicitly.

    Parameters
    ----------
    alert_id : int
        Used for logging and error reporting only.
    channel_refs : sequence of str | int
        The alert's channel uids and/or legacy ids.
    index : MigrationIndex
    default_receivers : set of str
        Receivers reachable from the root route.

    Returns
    -------
    frozenset of str | None
        ``None`` when the default route already covers the alert.

    Raises
    ------
    UnknownReceiverReferenceError
        A reference does not resolve.
    """
    if not channel_refs:
        return None

    names = frozenset(
        r.name for r in resolve_receivers(alert_id, channel_refs, index)
    )

    if names <= default_receivers:
        logger.debug(
            "Alert %s covered by default receivers", alert_id,
            extra={"alert_id": alert_id},
        )
        return None

    return names | frozenset(default_receivers)
