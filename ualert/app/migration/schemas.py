"""
schemas.py — Wire format of the migrated configuration.

Pydantic models mirroring the Alertmanager-compatible JSON document the
configuration store persists:

    {
      "template_files": {},
      "alertmanager_config": {
        "route": {
          "receiver": "autogen-contact-point-default",
          "group_by": ["grafana_folder", "alertname"],
          "routes": [
            {"receiver": "recv1",
             "object_matchers": [["__contacts__", "=~", ".*\\"recv1\\".*"]],
             "continue": true}
          ]
        },
        "receivers": [
          {"name": "recv1",
           "grafana_managed_receiver_configs": [
             {"uid": "...", "name": "recv1", "type": "slack",
              "disableResolveMessage": false,
              "settings": {...}, "secureSettings": {...}}
           ]}
        ]
      }
    }
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ualert.app.migration.models import (
    AlertingConfiguration,
    Integration,
    Receiver,
    Route,
)


class PostableGrafanaReceiver(BaseModel):
    """A single integration."""
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    name: str
    type: str
    disable_resolve_message: bool = Field(False, alias="disableResolveMessage")
    settings: Dict[str, Any] = Field(default_factory=dict)
    secure_settings: Dict[str, str] = Field(
        default_factory=dict, alias="secureSettings",
    )


class PostableApiReceiver(BaseModel):
    """A named receiver and its integrations."""
    name: str
    grafana_managed_receiver_configs: List[PostableGrafanaReceiver] = Field(
        default_factory=list,
    )


class RouteSchema(BaseModel):
    """A routing tree node."""
    model_config = ConfigDict(populate_by_name=True)

    receiver: str = ""
    group_by: Optional[List[str]] = None
    object_matchers: Optional[List[List[str]]] = None
    continue_matching: bool = Field(False, alias="continue")
    repeat_interval: Optional[str] = None
    routes: Optional[List["RouteSchema"]] = None


class PostableApiAlertingConfig(BaseModel):
    route: RouteSchema
    receivers: List[PostableApiReceiver] = Field(default_factory=list)


class PostableUserConfig(BaseModel):
    """Top-level document persisted per organisation."""
    template_files: Dict[str, str] = Field(default_factory=dict)
    alertmanager_config: PostableApiAlertingConfig

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ═══════════════════════════════════════════════════════════════════════════
# Converters
# ═══════════════════════════════════════════════════════════════════════════

def _integration(integration: Integration) -> PostableGrafanaReceiver:
    return PostableGrafanaReceiver(
        uid=integration.uid,
        name=integration.name,
        type=integration.type,
        disable_resolve_message=integration.disable_resolve_message,
        settings=integration.settings,
        secure_settings=integration.secure_settings,
    )


def _receiver(receiver: Receiver) -> PostableApiReceiver:
    return PostableApiReceiver(
        name=receiver.name,
        grafana_managed_receiver_configs=[
            _integration(i) for i in receiver.integrations
        ],
    )


def _route(route: Route) -> RouteSchema:
    return RouteSchema(
        receiver=route.receiver,
        group_by=route.group_by,
        object_matchers=[m.to_list() for m in route.matchers] or None,
        continue_matching=route.continue_matching,
        repeat_interval=route.repeat_interval,
        routes=(
            [_route(r) for r in route.routes]
            if route.routes is not None else None
        ),
    )


def to_postable_config(config: AlertingConfiguration) -> PostableUserConfig:
    """Serialise an organisation's migrated configuration."""
    return PostableUserConfig(
        alertmanager_config=PostableApiAlertingConfig(
            route=_route(config.route),
            receivers=[_receiver(r) for r in config.receivers],
        ),
    )
