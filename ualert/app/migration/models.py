"""
models.py — Shared data structures for the notification channel migration.

Defines:
    • LegacyChannel  — a pre-migration notification target
    • LegacyAlert    — a legacy alert and the channels it notifies
    • ChannelKey     — stable-uid-or-legacy-id lookup key (tagged union)
    • Integration    — one notifier inside a receiver
    • Receiver       — named bundle of integrations
    • Matcher, Route — nodes of the routing tree
    • MigrationIndex — ChannelKey → Receiver lookup
    • AlertingConfiguration, AlertSkip, OrgMigrationResult, MigrationReport

═══════════════════════════════════════════════════════════════════════════
CHANNEL IDENTITY
═══════════════════════════════════════════════════════════════════════════

Legacy alerts reference their channels either by the channel's stable
uid (a string) or, for older dashboards, by its numeric database id:

    {"uid": "ops-slack"}     →  ChannelKey(KeyKind.UID, "ops-slack")
    {"id": 42}               →  ChannelKey(KeyKind.ID, 42)

Both keys of one channel resolve to the *same* Receiver object in the
MigrationIndex, so callers can deduplicate by identity or by name
without caring which form an alert used.

═══════════════════════════════════════════════════════════════════════════
ROUTING TREE SHAPE
═══════════════════════════════════════════════════════════════════════════

    root (default route, no matchers, group_by=[folder, alertname])
      ├── receiver=recv1  matchers=[__contacts__ =~ .*"recv1".*]  continue
      ├── receiver=recv2  matchers=[__contacts__ =~ .*"recv2".*]  continue
      └── ...

A route with matchers and continue=True is a per-alert override; its
siblings keep being evaluated, so an alert labelled "recv1","recv2"
reaches both receivers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, Iterator, List, Optional, Union

from ualert.app.core.errors import MigrationError

ChannelRef = Union[str, int]


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class KeyKind(str, Enum):
    """Which identifier form a ChannelKey carries."""
    UID = "uid"
    ID  = "id"


class MatchType(IntEnum):
    """Label matcher operators, numbered as the routing engine numbers them."""
    EQUAL      = 0
    NOT_EQUAL  = 1
    REGEXP     = 2
    NOT_REGEXP = 3

    @property
    def operator(self) -> str:
        return _MATCH_OPERATORS[self]


_MATCH_OPERATORS = {
    MatchType.EQUAL:      "=",
    MatchType.NOT_EQUAL:  "!=",
    MatchType.REGEXP:     "=~",
    MatchType.NOT_REGEXP: "!~",
}


# ═══════════════════════════════════════════════════════════════════════════
# Channel keys
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ChannelKey:
    """
    Tagged union over the two ways a legacy channel can be referenced.

    Equality and hashing cover both the kind and the value, so
    ``ChannelKey.uid("42")`` and ``ChannelKey.legacy_id(42)`` are
    distinct keys.
    """
    kind: KeyKind
    value: ChannelRef

    @classmethod
    def uid(cls, uid: str) -> "ChannelKey":
        return cls(KeyKind.UID, uid)

    @classmethod
    def legacy_id(cls, channel_id: int) -> "ChannelKey":
        return cls(KeyKind.ID, channel_id)

    @classmethod
    def of(cls, ref: Union["ChannelKey", ChannelRef]) -> "ChannelKey":
        """Build a key from a raw reference: str → uid, int → legacy id."""
        if isinstance(ref, ChannelKey):
            return ref
        # bool is an int subclass; a flag is never a channel id
        if isinstance(ref, bool):
            raise TypeError(f"Invalid channel reference: {ref!r}")
        if isinstance(ref, int):
            return cls.legacy_id(ref)
        if isinstance(ref, str):
            return cls.uid(ref)
        raise TypeError(f"Invalid channel reference: {ref!r}")

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.value}"


# ═══════════════════════════════════════════════════════════════════════════
# Legacy input
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class LegacyChannel:
    """
    One notification channel from the legacy schema.

    Attributes
    ----------
    id : int
        Legacy numeric id (always present).
    uid : str
        Stable identifier; empty string for channels created before uids.
    name : str
        Display name; becomes the receiver name.
    type : str
        Notifier type (``slack``, ``email``, ``webhook``, ...).
    settings : dict | str
        Type-specific settings, as a mapping or as raw JSON text.
    secure_settings : dict
        Already-sensitive settings (tokens, passwords).
    is_default : bool
        "Send to all alerts" flag.
    """
    id: int
    name: str
    type: str = "email"
    uid: str = ""
    org_id: int = 1
    settings: Union[Dict[str, Any], str, None] = field(default_factory=dict)
    secure_settings: Dict[str, str] = field(default_factory=dict)
    is_default: bool = False
    disable_resolve_message: bool = False
    send_reminder: bool = False
    frequency: Optional[timedelta] = None

    def keys(self) -> List[ChannelKey]:
        """Every key this channel can be looked up by."""
        keys = []
        if self.uid:
            keys.append(ChannelKey.uid(self.uid))
        if self.id:
            keys.append(ChannelKey.legacy_id(self.id))
        return keys


@dataclass
class LegacyAlert:
    """A legacy dashboard alert and the channels it notifies, in order."""
    id: int
    title: str = ""
    org_id: int = 1
    channel_refs: List[ChannelRef] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════
# Unified configuration
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class Integration:
    """One notifier inside a receiver."""
    uid: str
    name: str
    type: str
    disable_resolve_message: bool = False
    settings: Dict[str, Any] = field(default_factory=dict)
    secure_settings: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "name": self.name,
            "type": self.type,
            "disable_resolve_message": self.disable_resolve_message,
            "settings": dict(self.settings),
            "secure_fields": sorted(self.secure_settings),
        }


@dataclass
class Receiver:
    """Named group of integrations; the name is unique per configuration."""
    name: str
    integrations: List[Integration] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "integrations": [i.to_dict() for i in self.integrations],
        }


@dataclass(frozen=True)
class Matcher:
    """Single label matcher, e.g. ``__contacts__ =~ .*"recv1".*``."""
    type: MatchType
    name: str
    value: str

    def to_list(self) -> List[str]:
        return [self.name, self.type.operator, self.value]


@dataclass
class Route:
    """
    Node in the routing tree.

    ``routes`` is None for leaves and a (possibly empty) list for nodes
    that accept children; the root always carries a list.
    """
    receiver: str = ""
    matchers: List[Matcher] = field(default_factory=list)
    continue_matching: bool = False
    routes: Optional[List["Route"]] = None
    group_by: Optional[List[str]] = None
    repeat_interval: Optional[str] = None

    def walk(self) -> Iterator["Route"]:
        """Depth-first iteration over this route and all descendants."""
        yield self
        for child in self.routes or []:
            yield from child.walk()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "receiver": self.receiver,
            "matchers": [m.to_list() for m in self.matchers],
            "continue": self.continue_matching,
            "group_by": self.group_by,
            "repeat_interval": self.repeat_interval,
            "routes": (
                [r.to_dict() for r in self.routes]
                if self.routes is not None else None
            ),
        }


@dataclass
class AlertingConfiguration:
    """Migrated configuration of one organisation."""
    org_id: int
    route: Route
    receivers: List[Receiver] = field(default_factory=list)

    def receiver_names(self) -> List[str]:
        return [r.name for r in self.receivers]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "org_id": self.org_id,
            "route": self.route.to_dict(),
            "receivers": [r.to_dict() for r in self.receivers],
        }


# ═══════════════════════════════════════════════════════════════════════════
# Migration index
# ═══════════════════════════════════════════════════════════════════════════

class MigrationIndex:
    """
    Lookup from ChannelKey to the Receiver migrated for that channel.

    Built incrementally with :meth:`add`, then frozen. Both keys of a
    channel map to the identical Receiver object.
    """

    def __init__(self) -> None:
        self._receivers: Dict[ChannelKey, Receiver] = {}
        self._frozen = False

    def add(self, channel: LegacyChannel, receiver: Receiver) -> None:
        if self._frozen:
            raise RuntimeError("MigrationIndex is read-only once frozen")
        for key in channel.keys():
            if key in self._receivers:
                raise MigrationError(
                    f"Channel key {key} is used by more than one channel",
                    status_code=409,
                    error_code="DUPLICATE_CHANNEL_KEY",
                    details={"key": str(key), "channel": channel.name},
                )
            self._receivers[key] = receiver

    def freeze(self) -> "MigrationIndex":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, ref: Union[ChannelKey, ChannelRef]) -> Optional[Receiver]:
        """Receiver for a uid, a legacy id or a ChannelKey; None if unknown."""
        return self._receivers.get(ChannelKey.of(ref))

    def __contains__(self, ref: object) -> bool:
        try:
            return ChannelKey.of(ref) in self._receivers  # type: ignore[arg-type]
        except TypeError:
            return False

    def __getitem__(self, ref: Union[ChannelKey, ChannelRef]) -> Receiver:
        return self._receivers[ChannelKey.of(ref)]

    def __len__(self) -> int:
        return len(self._receivers)

    def __iter__(self) -> Iterator[ChannelKey]:
        return iter(self._receivers)


# ═══════════════════════════════════════════════════════════════════════════
# Results & reporting
# ═══════════════════════════════════════════════════════════════════════════

def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AlertSkip:
    """An alert whose routing could not be migrated, and why."""
    org_id: int
    alert_id: int
    title: str
    reference: Optional[str]
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "org_id": self.org_id,
            "alert_id": self.alert_id,
            "title": self.title,
            "reference": self.reference,
            "reason": self.reason,
        }


@dataclass
class OrgMigrationResult:
    """Everything produced for one organisation."""
    org_id: int
    config: AlertingConfiguration
    alert_labels: Dict[int, Dict[str, str]] = field(default_factory=dict)
    skipped: List[AlertSkip] = field(default_factory=list)

    @property
    def route_count(self) -> int:
        # the root route is not counted
        return sum(1 for _ in self.config.route.walk()) - 1


@dataclass
class MigrationReport:
    """Pass/fail summary of one migration run."""
    run_id: str
    success: bool = False
    org_results: List[OrgMigrationResult] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None
    started_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None

    @property
    def skipped(self) -> List[AlertSkip]:
        return [s for r in self.org_results for s in r.skipped]

    @property
    def receiver_count(self) -> int:
        return sum(len(r.config.receivers) for r in self.org_results)

    @property
    def route_count(self) -> int:
        return sum(r.route_count for r in self.org_results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "success": self.success,
            "org_count": len(self.org_results),
            "receiver_count": self.receiver_count,
            "route_count": self.route_count,
            "skipped_alerts": [s.to_dict() for s in self.skipped],
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }
