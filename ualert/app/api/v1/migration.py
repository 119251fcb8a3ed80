"""
FastAPI route: operator surface for the alerting migration.

Provides endpoints to:
    POST /api/v1/migration/run                  — migrate legacy org data
    GET  /api/v1/migration/orgs/{id}/config     — last committed config
    GET  /api/v1/migration/health               — service health
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ualert.app.core.errors import NotFoundError
from ualert.app.migration.models import LegacyAlert, LegacyChannel
from ualert.app.migration.schemas import to_postable_config
from ualert.app.migration.service import run_migration
from ualert.app.migration.stores import InMemoryConfigStore, InMemoryLegacyStore

router = APIRouter(prefix="/api/v1/migration", tags=["alerting-migration"])

# Committed configurations (production: the alert configuration table)
config_store = InMemoryConfigStore()


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------

class LegacyChannelInput(BaseModel):
    """A legacy notification channel row."""
    id: int = Field(..., ge=1, examples=[7])
    uid: str = Field("", examples=["ops-slack"])
    name: str = Field(..., min_length=1, examples=["Ops Slack"])
    type: str = Field(..., min_length=1, examples=["slack"])
    settings: Union[Dict[str, Any], str] = Field(
        default_factory=dict,
        description="Settings object, or its raw JSON text",
    )
    secure_settings: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool = Field(False, description="Send to all alerts")
    disable_resolve_message: bool = False
    send_reminder: bool = False
    frequency_seconds: Optional[int] = Field(None, ge=1, examples=[3600])


class LegacyAlertInput(BaseModel):
    """A legacy dashboard alert and its channel references."""
    id: int = Field(..., ge=1, examples=[101])
    title: str = Field("", examples=["High CPU"])
    channel_refs: List[Union[int, str]] = Field(
        default_factory=list,
        description="Channel uids (strings) or legacy ids (integers)",
        examples=[["ops-slack", 12]],
    )
    labels: Dict[str, str] = Field(default_factory=dict)


class LegacyOrgInput(BaseModel):
    org_id: int = Field(..., ge=1, examples=[1])
    channels: List[LegacyChannelInput] = Field(default_factory=list)
    alerts: List[LegacyAlertInput] = Field(default_factory=list)


class MigrationRunRequest(BaseModel):
    orgs: List[LegacyOrgInput] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def _to_channel(org_id: int, c: LegacyChannelInput) -> LegacyChannel:
    """Convert Pydantic model to dataclass."""
    return LegacyChannel(
        id=c.id,
        uid=c.uid,
        org_id=org_id,
        name=c.name,
        type=c.type,
        settings=c.settings,
        secure_settings=c.secure_settings,
        is_default=c.is_default,
        disable_resolve_message=c.disable_resolve_message,
        send_reminder=c.send_reminder,
        frequency=(
            timedelta(seconds=c.frequency_seconds)
            if c.frequency_seconds else None
        ),
    )


def _to_alert(org_id: int, a: LegacyAlertInput) -> LegacyAlert:
    return LegacyAlert(
        id=a.id,
        org_id=org_id,
        title=a.title,
        channel_refs=list(a.channel_refs),
        labels=dict(a.labels),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/run",
    summary="Run the notification channel migration",
    description=(
        "Converts legacy channels into receivers and legacy alert channel "
        "lists into a routing tree. All organisations are committed "
        "together; a fatal error commits nothing."
    ),
)
async def run(request: MigrationRunRequest):
    """Migrate the supplied organisations and commit the result."""
    legacy_store = InMemoryLegacyStore(
        channels=[
            _to_channel(org.org_id, c)
            for org in request.orgs for c in org.channels
        ],
        alerts=[
            _to_alert(org.org_id, a)
            for org in request.orgs for a in org.alerts
        ],
    )

    report = run_migration(legacy_store, config_store)

    body = report.to_dict()
    body["configs"] = {
        str(r.org_id): to_postable_config(r.config).to_json_dict()
        for r in report.org_results
    }
    body["alert_labels"] = {
        str(r.org_id): {str(aid): lbls for aid, lbls in r.alert_labels.items()}
        for r in report.org_results
    }
    return body


@router.get(
    "/orgs/{org_id}/config",
    summary="Get migrated configuration",
    description="Return the last committed configuration of an organisation.",
)
async def get_org_config(org_id: int):
    config = config_store.get(org_id)
    if config is None:
        raise NotFoundError("Alerting configuration", org_id=org_id)
    return to_postable_config(config).to_json_dict()


@router.get(
    "/health",
    summary="Migration service health check",
)
async def health():
    return {
        "status": "healthy",
        "service": "alerting-migration",
        "committed_orgs": len(config_store.configs),
    }
