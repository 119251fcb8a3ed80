"""
service.py — Migration orchestration.

Runs the whole legacy → unified alerting conversion for every
organisation, entirely in memory, and commits the result in one write.

═══════════════════════════════════════════════════════════════════════════
PER-ORGANISATION FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌──────────────────────────┐
    │ 1. Receiver Builder      │  channel → receiver, index by uid + id
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐
    │ 2. Default Consolidator  │  default channels → root route (+ receiver)
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐
    │ 3. Per alert             │  synthesise override routes
    │                          │  filter against defaults
    │                          │    None → no contact label
    │                          │    set  → stamp contact label
    │                          │  unknown channel → skip + report
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐
    │ 4. Attach overrides      │  one continue-route per receiver used,
    │                          │  in receiver order, under the root
    └──────────────────────────┘

═══════════════════════════════════════════════════════════════════════════
FAILURE POLICY
═══════════════════════════════════════════════════════════════════════════

    Error                           Scope        Effect
    ─────────────────────────────   ─────────    ───────────────────────────
    IntegrationConversionError      fatal        whole run aborted, no write
    DuplicateReceiverNameError      fatal        whole run aborted, no write
    UnknownReceiverReferenceError   per alert    alert skipped and reported

All organisations are migrated before anything is written, so a fatal
error in the last organisation still leaves storage untouched.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from ualert.app.core.config import CONTACT_LABEL
from ualert.app.core.errors import (
    DuplicateReceiverNameError,
    MigrationError,
    UnknownReceiverReferenceError,
)
from ualert.app.core.logging_config import set_run_context, update_run_context
from ualert.app.migration.defaults import (
    create_default_route_and_receiver,
    default_receiver_names,
)
from ualert.app.migration.filters import filter_receivers_for_alert
from ualert.app.migration.models import (
    AlertingConfiguration,
    AlertSkip,
    LegacyAlert,
    LegacyChannel,
    MigrationReport,
    OrgMigrationResult,
    Receiver,
    Route,
)
from ualert.app.migration.receivers import (
    UidFactory,
    create_receivers,
    new_integration_uid,
)
from ualert.app.migration.routes import (
    contact_label_value,
    create_route,
    synthesize_alert_routes,
)
from ualert.app.migration.stores import ConfigStore, LegacyStore

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Single organisation
# ═══════════════════════════════════════════════════════════════════════════

def migrate_org(
    org_id: int,
    channels: Sequence[LegacyChannel],
    alerts: Sequence[LegacyAlert],
    uid_factory: UidFactory = new_integration_uid,
) -> OrgMigrationResult:
    """
    Migrate one organisation's channels and alert routing.

    Returns
    -------
    OrgMigrationResult
        Configuration, the labels each migrated alert should carry, and
        the alerts that were skipped.

    Raises
    ------
    IntegrationConversionError, DuplicateReceiverNameError
        Fatal; nothing from this organisation is usable.
    """
    update_run_context(org_id=org_id)

    # ── Step 1: receivers ──
    index, receivers = create_receivers(channels, uid_factory)
    receivers_by_name: Dict[str, Receiver] = {r.name: r for r in receivers}

    # ── Step 2: default route ──
    default_channels = [c for c in channels if c.is_default]
    defaults = default_receiver_names(default_channels)
    default_receiver, root = create_default_route_and_receiver(
        default_channels, uid_factory,
    )

    all_receivers: List[Receiver] = list(receivers)
    if default_receiver is not None:
        if default_receiver.name in receivers_by_name:
            raise DuplicateReceiverNameError(
                default_receiver.name,
                channel_ids=[_channel_id_for(channels, default_receiver.name)],
            )
        all_receivers.append(default_receiver)

    # ── Step 3: per-alert routing ──
    overrides: Dict[str, Route] = {}
    alert_labels: Dict[int, Dict[str, str]] = {}
    skipped: List[AlertSkip] = []

    for alert in alerts:
        try:
            alert_routes = synthesize_alert_routes(
                alert.id, alert.channel_refs, index,
            )
            names = filter_receivers_for_alert(
                alert.id, alert.channel_refs, index, defaults,
            )
        except UnknownReceiverReferenceError as exc:
            logger.warning(
                "Skipping alert %d (%s): %s",
                alert.id, alert.title, exc.message,
                extra={"org_id": org_id, "alert_id": alert.id},
            )
            skipped.append(AlertSkip(
                org_id=org_id,
                alert_id=alert.id,
                title=alert.title,
                reference=str(exc.reference),
                reason=exc.message,
            ))
            continue

        labels = dict(alert.labels)
        if names is not None:
            labels[CONTACT_LABEL] = contact_label_value(names)
            for route in alert_routes:
                overrides.setdefault(route.receiver, route)
            for name in sorted(names.difference(overrides)):
                overrides[name] = create_route(receivers_by_name[name])
        alert_labels[alert.id] = labels

    # ── Step 4: attach overrides under the root, in receiver order ──
    root.routes = [
        overrides[r.name] for r in receivers if r.name in overrides
    ]

    result = OrgMigrationResult(
        org_id=org_id,
        config=AlertingConfiguration(
            org_id=org_id, route=root, receivers=all_receivers,
        ),
        alert_labels=alert_labels,
        skipped=skipped,
    )
    logger.info(
        "Org %d migrated: %d receivers, %d routes, %d alerts, %d skipped",
        org_id, len(all_receivers), result.route_count,
        len(alert_labels), len(skipped),
        extra={
            "org_id": org_id,
            "receiver_count": len(all_receivers),
            "route_count": result.route_count,
            "skipped_count": len(skipped),
        },
    )
    return result


def _channel_id_for(channels: Sequence[LegacyChannel], name: str) -> int:
    """Legacy id of the channel whose receiver is called ``name``."""
    return next(c.id for c in channels if c.name == name)


# ═══════════════════════════════════════════════════════════════════════════
# Full run
# ═══════════════════════════════════════════════════════════════════════════

def run_migration(
    legacy_store: LegacyStore,
    config_store: ConfigStore,
    *,
    uid_factory: UidFactory = new_integration_uid,
) -> MigrationReport:
    """
    Migrate every organisation and commit all configurations at once.

    Parameters
    ----------
    legacy_store : LegacyStore
        Source of channels and alerts.
    config_store : ConfigStore
        Receives every organisation's configuration in a single ``save``.
    uid_factory : callable
        Produces integration uids.

    Returns
    -------
    MigrationReport
        ``success`` is True; skipped alerts are listed.

    Raises
    ------
    MigrationError
        Any fatal error; ``config_store.save`` is not called.
    """
    run_id = uuid.uuid4().hex[:16]
    set_run_context(run_id=run_id)
    report = MigrationReport(run_id=run_id)
    start = time.perf_counter()

    try:
        org_ids = legacy_store.list_org_ids()
        logger.info("Starting migration of %d organisations", len(org_ids))

        results: List[OrgMigrationResult] = []
        for org_id in org_ids:
            results.append(migrate_org(
                org_id,
                legacy_store.fetch_legacy_channels(org_id),
                legacy_store.fetch_legacy_alerts(org_id),
                uid_factory,
            ))

        config_store.save(
            {r.org_id: r.config for r in results},
            {r.org_id: r.alert_labels for r in results},
        )
    except MigrationError as exc:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.error(
            "Migration aborted [%s]: %s", exc.error_code, exc.message,
            extra={"duration_ms": duration_ms},
        )
        raise
    finally:
        set_run_context()

    report.org_results = results
    report.success = True
    report.completed_at = datetime.now(timezone.utc)

    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "Migration complete: %d orgs, %d receivers, %d routes, %d alerts skipped (%.1fms)",
        len(results), report.receiver_count, report.route_count,
        len(report.skipped), duration_ms,
        extra={"duration_ms": duration_ms},
    )
    return report
