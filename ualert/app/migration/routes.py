"""
routes.py — Per-Alert Route Synthesizer.

Migrated alerts carry a single contact label listing every receiver they
notify, each name quoted:

    __contacts__ = "recv1","recv2"

Each receiver gets one override route that regex-matches its quoted name
anywhere in that label:

    receiver=recv1  __contacts__ =~ .*"recv1".*  continue=true

Quoting keeps ``"ops"`` from matching ``"ops-oncall"``. The quoted name is
then escaped with RE2 metacharacter rules so the downstream evaluator,
which compiles matchers as RE2, reads it literally.
"""

from __future__ import annotations

import json
from typing import Iterable, List, Sequence

from ualert.app.core.config import CONTACT_LABEL
from ualert.app.core.errors import UnknownReceiverReferenceError
from ualert.app.migration.models import (
    ChannelRef,
    MatchType,
    Matcher,
    MigrationIndex,
    Receiver,
    Route,
)

# RE2 metacharacters, as escaped by Go's regexp.QuoteMeta
_RE2_SPECIAL = set("\\.+*?()|[]{}^$")


def quote_name(name: str) -> str:
    """Double-quote a receiver name, escaping quotes and backslashes."""
    return json.dumps(name, ensure_ascii=False)


def quote_meta(text: str) -> str:
    """Escape RE2 metacharacters so ``text`` matches literally."""
    return "".join("\\" + ch if ch in _RE2_SPECIAL else ch for ch in text)


def contact_matcher(receiver_name: str) -> Matcher:
    return Matcher(
        type=MatchType.REGEXP,
        name=CONTACT_LABEL,
        value=f".*{quote_meta(quote_name(receiver_name))}.*",
    )


def contact_label_value(receiver_names: Iterable[str]) -> str:
    """Contact label value for an alert: sorted quoted names, comma-joined."""
    return ",".join(sorted(quote_name(n) for n in receiver_names))


def create_route(receiver: Receiver) -> Route:
    """Override route sending alerts whose contact label names ``receiver``."""
    return Route(
        receiver=receiver.name,
        matchers=[contact_matcher(receiver.name)],
        continue_matching=True,
        routes=None,
    )


def resolve_receivers(
    alert_id: int,
    channel_refs: Sequence[ChannelRef],
    index: MigrationIndex,
) -> List[Receiver]:
    """
    Resolve an alert's channel references to distinct receivers, in order.

    Raises
    ------
    UnknownReceiverReferenceError
        A reference is not in the index.
    """
    resolved: List[Receiver] = []
    seen = set()
    for ref in channel_refs:
        receiver = index.resolve(ref)
        if receiver is None:
            raise UnknownReceiverReferenceError(alert_id, ref)
        if receiver.name not in seen:
            seen.add(receiver.name)
            resolved.append(receiver)
    return resolved


def synthesize_alert_routes(
    alert_id: int,
    channel_refs: Sequence[ChannelRef],
    index: MigrationIndex,
) -> List[Route]:
    """One override route per distinct receiver referenced by an alert."""
    return [
        create_route(receiver)
        for receiver in resolve_receivers(alert_id, channel_refs, index)
    ]
