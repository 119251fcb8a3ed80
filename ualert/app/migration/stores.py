"""
stores.py — Interfaces to the data sources and sinks around the migration.

The migration reads legacy channels and alerts once, and writes the
finished configuration once. Both sides are external collaborators;
only their shapes are defined here, plus in-memory implementations used
by the HTTP surface and the tests (production: the legacy SQL tables
and the configuration table).
"""

from __future__ import annotations

import copy
import logging
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from ualert.app.migration.models import (
    AlertingConfiguration,
    LegacyAlert,
    LegacyChannel,
)

logger = logging.getLogger(__name__)


class LegacyStore(Protocol):
    """Read-only source of legacy notification data."""

    def list_org_ids(self) -> List[int]: ...

    def fetch_legacy_channels(self, org_id: int) -> Sequence[LegacyChannel]: ...

    def fetch_legacy_alerts(self, org_id: int) -> Sequence[LegacyAlert]: ...


class ConfigStore(Protocol):
    """Write-only sink for migrated configurations."""

    def save(
        self,
        configs: Mapping[int, AlertingConfiguration],
        alert_labels: Mapping[int, Mapping[int, Mapping[str, str]]],
    ) -> None: ...


class InMemoryLegacyStore:
    """LegacyStore backed by plain lists, keyed by organisation."""

    def __init__(
        self,
        channels: Sequence[LegacyChannel] = (),
        alerts: Sequence[LegacyAlert] = (),
    ) -> None:
        self._channels: Dict[int, List[LegacyChannel]] = {}
        self._alerts: Dict[int, List[LegacyAlert]] = {}
        for c in channels:
            self._channels.setdefault(c.org_id, []).append(c)
        for a in alerts:
            self._alerts.setdefault(a.org_id, []).append(a)

    def list_org_ids(self) -> List[int]:
        return sorted(set(self._channels) | set(self._alerts))

    def fetch_legacy_channels(self, org_id: int) -> List[LegacyChannel]:
        return list(self._channels.get(org_id, []))

    def fetch_legacy_alerts(self, org_id: int) -> List[LegacyAlert]:
        return list(self._alerts.get(org_id, []))


class InMemoryConfigStore:
    """ConfigStore that keeps the last committed configuration per org."""

    def __init__(self) -> None:
        self.configs: Dict[int, AlertingConfiguration] = {}
        self.alert_labels: Dict[int, Dict[int, Dict[str, str]]] = {}
        self.commit_count = 0

    def save(
        self,
        configs: Mapping[int, AlertingConfiguration],
        alert_labels: Mapping[int, Mapping[int, Mapping[str, str]]],
    ) -> None:
        # Stage copies first so a failure leaves the previous state intact
        staged_configs = copy.deepcopy(dict(configs))
        staged_labels = {
            org_id: {aid: dict(lbls) for aid, lbls in labels.items()}
            for org_id, labels in alert_labels.items()
        }
        self.configs.update(staged_configs)
        self.alert_labels.update(staged_labels)
        self.commit_count += 1
        logger.info(
            "Committed configuration for %d organisations", len(staged_configs),
        )

    def get(self, org_id: int) -> Optional[AlertingConfiguration]:
        return self.configs.get(org_id)

    def clear(self) -> None:
        self.configs.clear()
        self.alert_labels.clear()
        self.commit_count = 0
