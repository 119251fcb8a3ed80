"""
secure_settings.py — Legacy channel settings → integration settings.

Legacy channels stored their configuration as a JSON blob, with
credentials mixed in among plain options. Integrations keep credentials
in a separate secure payload, so each known sensitive key is moved out
of ``settings`` into ``secure_settings`` during conversion.

═══════════════════════════════════════════════════════════════════════════
SENSITIVE KEYS BY INTEGRATION TYPE
═══════════════════════════════════════════════════════════════════════════

    Type                       Keys moved to secure settings
    ──────────────────────     ─────────────────────────────
    slack                      url, token
    pagerduty                  integrationKey
    webhook                    password
    prometheus-alertmanager    basicAuthPassword
    opsgenie                   apiKey
    telegram                   bottoken
    line                       token
    pushover                   apiToken, userKey
    threema                    api_secret
    sensu / sensugo            password / apiKey
    discord / googlechat       url
    teams / victorops / dingding / kafka / email   (none)

Values already present in the legacy secure payload win over values
found in plain settings.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Tuple

from ualert.app.core.errors import IntegrationConversionError
from ualert.app.migration.models import LegacyChannel

logger = logging.getLogger(__name__)


SECURE_KEYS_BY_TYPE: Dict[str, Tuple[str, ...]] = {
    "slack":                   ("url", "token"),
    "pagerduty":               ("integrationKey",),
    "webhook":                 ("password",),
    "prometheus-alertmanager": ("basicAuthPassword",),
    "opsgenie":                ("apiKey",),
    "telegram":                ("bottoken",),
    "line":                    ("token",),
    "pushover":                ("apiToken", "userKey"),
    "threema":                 ("api_secret",),
    "sensu":                   ("password",),
    "sensugo":                 ("apiKey",),
    "discord":                 ("url",),
    "googlechat":              ("url",),
}


def decode_settings(channel: LegacyChannel) -> Dict[str, Any]:
    """
    Interpret a channel's settings payload as a JSON object.

    Raises
    ------
    IntegrationConversionError
        If the payload is neither a mapping nor JSON object text.
    """
    raw = channel.settings
    if raw is None or raw == "":
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except ValueError as exc:
            raise IntegrationConversionError(
                channel.name, f"settings are not valid JSON ({exc})",
                channel_id=channel.id,
            ) from exc
        if not isinstance(decoded, dict):
            raise IntegrationConversionError(
                channel.name,
                f"settings must be a JSON object, got {type(decoded).__name__}",
                channel_id=channel.id,
            )
        return decoded
    raise IntegrationConversionError(
        channel.name,
        f"unsupported settings payload {type(raw).__name__}",
        channel_id=channel.id,
    )


def migrate_settings(
    channel_type: str,
    settings: Mapping[str, Any],
    secure_settings: Mapping[str, str],
) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """
    Split settings into plain and secure payloads for an integration type.

    Neither input mapping is modified.

    Returns
    -------
    (settings, secure_settings)
    """
    plain = dict(settings)
    secure = dict(secure_settings)

    for key in SECURE_KEYS_BY_TYPE.get(channel_type, ()):
        value = plain.pop(key, None)
        if value in (None, ""):
            continue
        secure.setdefault(key, str(value))

    return plain, secure


def convert_channel_settings(
    channel: LegacyChannel,
) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """Validate and convert a legacy channel's settings for its integration."""
    if not channel.type:
        raise IntegrationConversionError(
            channel.name, "channel has no notifier type", channel_id=channel.id,
        )

    settings = decode_settings(channel)

    secure = channel.secure_settings or {}
    if not isinstance(secure, Mapping):
        raise IntegrationConversionError(
            channel.name, "secure settings must be a mapping",
            channel_id=channel.id,
        )
    bad = sorted(k for k, v in secure.items() if not isinstance(v, str))
    if bad:
        raise IntegrationConversionError(
            channel.name, f"secure settings must be strings: {bad}",
            channel_id=channel.id,
        )

    plain, secure_out = migrate_settings(channel.type, settings, secure)
    moved = sorted(set(secure_out) - set(secure))
    if moved:
        logger.debug(
            "Moved %s of channel %s to secure settings",
            moved, channel.name,
            extra={"channel_id": channel.id},
        )
    return plain, secure_out
