"""
defaults.py — Default Receiver Consolidator.

Channels flagged "send to all alerts" are collapsed into the target of
the root route, which matches every alert:

    Default channels    Root route receiver          New receiver
    ────────────────    ─────────────────────────    ─────────────────────────
    0                   DEFAULT_RECEIVER_NAME        DEFAULT_RECEIVER_NAME, []
    1                   <that channel's name>        None (reuse existing)
    2+                  DEFAULT_RECEIVER_NAME        DEFAULT_RECEIVER_NAME,
                                                     one integration per
                                                     channel, input order

The root route groups by folder title and alert name, which is how
legacy notifications were grouped.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import FrozenSet, List, Optional, Sequence, Tuple

from ualert.app.core.config import (
    ALERT_NAME_LABEL,
    DEFAULT_RECEIVER_NAME,
    FOLDER_TITLE_LABEL,
)
from ualert.app.migration.models import LegacyChannel, Receiver, Route
from ualert.app.migration.receivers import (
    UidFactory,
    create_integration,
    new_integration_uid,
)

logger = logging.getLogger(__name__)


def format_duration(value: timedelta) -> str:
    """Render a timedelta as a Prometheus-style duration, e.g. ``1h30m``."""
    total = int(value.total_seconds())
    if total <= 0:
        return "0s"
    parts = []
    for unit, size in (("h", 3600), ("m", 60), ("s", 1)):
        amount, total = divmod(total, size)
        if amount:
            parts.append(f"{amount}{unit}")
    return "".join(parts)


def default_receiver_names(
    default_channels: Sequence[LegacyChannel],
) -> FrozenSet[str]:
    """Names of the receivers already notified by the root route."""
    return frozenset(c.name for c in default_channels)


def _repeat_interval(default_channels: Sequence[LegacyChannel]) -> Optional[str]:
    """Shortest reminder frequency among default channels, if any remind."""
    frequencies = [
        c.frequency for c in default_channels
        if c.send_reminder and c.frequency
    ]
    if not frequencies:
        return None
    return format_duration(min(frequencies))


def create_default_route_and_receiver(
    default_channels: Sequence[LegacyChannel],
    uid_factory: UidFactory = new_integration_uid,
) -> Tuple[Optional[Receiver], Route]:
    """
    Build the root route and, when needed, a consolidated default receiver.

    Parameters
    ----------
    default_channels : sequence of LegacyChannel
        Channels flagged as default, in storage order.
    uid_factory : callable
        Produces integration uids for the consolidated receiver.

    Returns
    -------
    (Receiver | None, Route)
        ``None`` when exactly one default channel exists; its own receiver
        (built by the Receiver Builder) is the root target.

    Raises
    ------
    IntegrationConversionError
        A default channel's settings are malformed.
    """
    group_by: List[str] = [FOLDER_TITLE_LABEL, ALERT_NAME_LABEL]
    route = Route(
        receiver=DEFAULT_RECEIVER_NAME,
        routes=[],
        group_by=group_by,
        repeat_interval=_repeat_interval(default_channels),
    )

    if len(default_channels) == 1:
        route.receiver = default_channels[0].name
        logger.info(
            "Single default channel; root route uses receiver %s",
            route.receiver,
            extra={"receiver": route.receiver},
        )
        return None, route

    receiver = Receiver(
        name=DEFAULT_RECEIVER_NAME,
        integrations=[
            create_integration(c, uid_factory) for c in default_channels
        ],
    )
    logger.info(
        "Created default receiver %s with %d integrations",
        receiver.name, len(receiver.integrations),
        extra={"receiver": receiver.name},
    )
    return receiver, route
