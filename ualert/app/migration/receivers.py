"""
receivers.py — Receiver Builder: legacy channels → receivers.

Every legacy channel becomes exactly one Receiver carrying a single
Integration. The receiver is named after the channel and registered in
the MigrationIndex under each key the channel can be referenced by:

    channel(uid="ops", id=7, name="Ops Slack")
        → index[uid:ops] ─┐
        → index[id:7]   ──┴→ Receiver("Ops Slack", [Integration(...)])

Integration uids are minted fresh; they never reuse the channel uid.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Dict, List, Sequence, Tuple

from ualert.app.core.config import settings
from ualert.app.core.errors import DuplicateReceiverNameError
from ualert.app.migration.models import (
    Integration,
    LegacyChannel,
    MigrationIndex,
    Receiver,
)
from ualert.app.migration.secure_settings import convert_channel_settings

logger = logging.getLogger(__name__)

UidFactory = Callable[[], str]


def new_integration_uid() -> str:
    """Mint a short random uid for an integration."""
    return uuid.uuid4().hex[: settings.INTEGRATION_UID_LENGTH]


def create_integration(
    channel: LegacyChannel,
    uid_factory: UidFactory = new_integration_uid,
) -> Integration:
    """
    Convert one legacy channel into an integration.

    Raises
    ------
    IntegrationConversionError
        If the channel's settings cannot be interpreted.
    """
    plain, secure = convert_channel_settings(channel)
    return Integration(
        uid=uid_factory(),
        name=channel.name,
        type=channel.type,
        disable_resolve_message=channel.disable_resolve_message,
        settings=plain,
        secure_settings=secure,
    )


def create_receivers(
    channels: Sequence[LegacyChannel],
    uid_factory: UidFactory = new_integration_uid,
) -> Tuple[MigrationIndex, List[Receiver]]:
    """
    Build one receiver per channel and index it by uid and legacy id.

    Parameters
    ----------
    channels : sequence of LegacyChannel
        All channels of one organisation, in storage order.
    uid_factory : callable
        Produces integration uids; injectable for deterministic tests.

    Returns
    -------
    (MigrationIndex, list of Receiver)
        The frozen index and the distinct receivers in input order.

    Raises
    ------
    IntegrationConversionError
        A channel's settings are malformed.
    DuplicateReceiverNameError
        Two channels share a display name.
    """
    index = MigrationIndex()
    receivers: List[Receiver] = []
    owners: Dict[str, LegacyChannel] = {}

    for channel in channels:
        previous = owners.get(channel.name)
        if previous is not None:
            raise DuplicateReceiverNameError(
                channel.name, channel_ids=[previous.id, channel.id],
            )

        receiver = Receiver(
            name=channel.name,
            integrations=[create_integration(channel, uid_factory)],
        )
        index.add(channel, receiver)
        receivers.append(receiver)
        owners[channel.name] = channel

        if not channel.uid:
            logger.debug(
                "Channel %d has no uid; indexed by legacy id only",
                channel.id,
                extra={"channel_id": channel.id, "receiver": channel.name},
            )

    logger.info(
        "Created %d receivers (%d lookup keys)",
        len(receivers), len(index),
        extra={"receiver_count": len(receivers)},
    )
    return index.freeze(), receivers
