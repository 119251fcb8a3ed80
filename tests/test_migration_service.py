"""
test_migration_service.py — Tests for migration orchestration and its
outer surfaces.

Covers:
    • migrate_org (routing tree assembly, contact labels, skipped alerts)
    • run_migration (all-or-nothing commit, report, determinism)
    • In-memory stores
    • Wire format of the migrated configuration
    • HTTP endpoints and error envelope

Run with:
    pytest tests/test_migration_service.py -v
"""

from __future__ import annotations

import itertools

import pytest
from fastapi.testclient import TestClient

from ualert.app.api.v1.migration import config_store
from ualert.app.core.config import CONTACT_LABEL, DEFAULT_RECEIVER_NAME
from ualert.app.core.errors import (
    DuplicateReceiverNameError,
    IntegrationConversionError,
)
from ualert.app.core.logging_config import get_run_context
from ualert.app.main import app
from ualert.app.migration.models import LegacyAlert, LegacyChannel
from ualert.app.migration.schemas import to_postable_config
from ualert.app.migration.service import migrate_org, run_migration
from ualert.app.migration.stores import InMemoryConfigStore, InMemoryLegacyStore


# ═══════════════════════════════════════════════════════════════════════════
# Test Fixtures
# ═══════════════════════════════════════════════════════════════════════════

def _make_channel(uid, cid, name, org_id=1, **kwargs) -> LegacyChannel:
    kwargs.setdefault("type", "email")
    return LegacyChannel(id=cid, uid=uid, name=name, org_id=org_id, **kwargs)


def _make_alert(aid, refs, org_id=1, title=None, labels=None) -> LegacyAlert:
    return LegacyAlert(
        id=aid,
        org_id=org_id,
        title=title or f"alert-{aid}",
        channel_refs=list(refs),
        labels=dict(labels or {}),
    )


def _uids():
    counter = itertools.count(1)
    return lambda: f"int-{next(counter)}"


def _org_channels(org_id=1):
    return [
        _make_channel("a", 1, "A", org_id=org_id, is_default=True),
        _make_channel("b", 2, "B", org_id=org_id),
        _make_channel("c", 3, "C", org_id=org_id),
    ]


def _org_alerts(org_id=1):
    return [
        _make_alert(10, ["b"], org_id=org_id, labels={"team": "web"}),
        _make_alert(11, ["a"], org_id=org_id),
        _make_alert(12, [], org_id=org_id),
        _make_alert(13, ["missing"], org_id=org_id),
        _make_alert(14, [3, "c"], org_id=org_id),
    ]


@pytest.fixture(autouse=True)
def _clear_stores():
    """Clean the API's in-memory config store before each test."""
    config_store.clear()
    yield
    config_store.clear()


@pytest.fixture
def client():
    return TestClient(app)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Single Organisation
# ═══════════════════════════════════════════════════════════════════════════

class TestMigrateOrg:
    """Test migrate_org."""

    def test_single_default_channel_is_root_receiver(self):
        result = migrate_org(1, _org_channels(), _org_alerts())
        assert result.config.route.receiver == "A"
        assert result.config.receiver_names() == ["A", "B", "C"]

    def test_contact_labels(self):
        result = migrate_org(1, _org_channels(), _org_alerts())
        labels = result.alert_labels
        assert labels[10] == {"team": "web", CONTACT_LABEL: '"A","B"'}
        assert labels[14] == {CONTACT_LABEL: '"A","C"'}

    def test_covered_and_empty_alerts_use_default_route(self):
        result = migrate_org(1, _org_channels(), _org_alerts())
        assert CONTACT_LABEL not in result.alert_labels[11]
        assert result.alert_labels[12] == {}

    def test_unknown_reference_skipped_and_reported(self):
        result = migrate_org(1, _org_channels(), _org_alerts())
        assert 13 not in result.alert_labels
        assert len(result.skipped) == 1
        skip = result.skipped[0]
        assert skip.alert_id == 13
        assert skip.reference == "missing"
        assert "missing" in skip.reason

    def test_override_routes_in_receiver_order(self):
        result = migrate_org(1, _org_channels(), _org_alerts())
        root = result.config.route
        assert [r.receiver for r in root.routes] == ["A", "B", "C"]
        for child in root.routes:
            assert child.continue_matching is True
            assert child.routes is None
            assert child.matchers[0].value == f'.*"{child.receiver}".*'
        assert result.route_count == 3

    def test_unreferenced_receiver_gets_no_route(self):
        channels = _org_channels() + [_make_channel("d", 4, "D")]
        result = migrate_org(1, channels, [_make_alert(10, ["b"])])
        assert [r.receiver for r in result.config.route.routes] == ["A", "B"]

    def test_multiple_defaults_add_consolidated_receiver(self):
        channels = [
            _make_channel("a", 1, "A", is_default=True),
            _make_channel("b", 2, "B", is_default=True),
            _make_channel("c", 3, "C"),
        ]
        result = migrate_org(1, channels, [_make_alert(10, ["c"])])
        config = result.config
        assert config.route.receiver == DEFAULT_RECEIVER_NAME
        assert config.receiver_names() == ["A", "B", "C", DEFAULT_RECEIVER_NAME]
        assert [i.name for i in config.receivers[-1].integrations] == ["A", "B"]
        assert result.alert_labels[10][CONTACT_LABEL] == '"A","B","C"'

    def test_no_defaults_adds_empty_default_receiver(self):
        result = migrate_org(1, [_make_channel("c", 3, "C")], [])
        assert result.config.route.receiver == DEFAULT_RECEIVER_NAME
        assert result.config.receivers[-1].integrations == []
        assert result.config.route.routes == []

    def test_default_name_collision_is_fatal(self):
        channels = [_make_channel("x", 5, DEFAULT_RECEIVER_NAME)]
        with pytest.raises(DuplicateReceiverNameError) as exc_info:
            migrate_org(1, channels, [])
        assert exc_info.value.details["channel_ids"] == [5]

    def test_alert_input_not_mutated(self):
        alerts = [_make_alert(10, ["b"], labels={"team": "web"})]
        migrate_org(1, _org_channels(), alerts)
        assert alerts[0].labels == {"team": "web"}


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Full Run
# ═══════════════════════════════════════════════════════════════════════════

class TestRunMigration:
    """Test run_migration."""

    def _legacy(self):
        return InMemoryLegacyStore(
            channels=_org_channels(1) + _org_channels(2),
            alerts=_org_alerts(1) + _org_alerts(2),
        )

    def test_success_commits_once(self):
        store = InMemoryConfigStore()
        report = run_migration(self._legacy(), store)

        assert report.success is True
        assert store.commit_count == 1
        assert sorted(store.configs) == [1, 2]
        assert store.alert_labels[2][10][CONTACT_LABEL] == '"A","B"'

    def test_report_lists_skipped_alerts(self):
        report = run_migration(self._legacy(), InMemoryConfigStore())
        d = report.to_dict()
        assert d["org_count"] == 2
        assert d["receiver_count"] == 6
        assert d["route_count"] == 6
        assert [(s["org_id"], s["alert_id"]) for s in d["skipped_alerts"]] == [
            (1, 13), (2, 13),
        ]
        assert d["completed_at"] is not None

    def test_fatal_error_commits_nothing(self):
        legacy = InMemoryLegacyStore(
            channels=_org_channels(1) + [
                _make_channel("bad", 9, "Broken", org_id=2, settings="{oops"),
            ],
        )
        store = InMemoryConfigStore()
        with pytest.raises(IntegrationConversionError):
            run_migration(legacy, store)
        assert store.commit_count == 0
        assert store.configs == {}

    def test_run_context_cleared(self):
        run_migration(self._legacy(), InMemoryConfigStore())
        assert get_run_context() == {}

    def test_deterministic_except_uids(self):
        first = run_migration(self._legacy(), InMemoryConfigStore(), uid_factory=_uids())
        second = run_migration(self._legacy(), InMemoryConfigStore(), uid_factory=_uids())
        for a, b in zip(first.org_results, second.org_results):
            assert a.config.to_dict() == b.config.to_dict()
            assert a.alert_labels == b.alert_labels

    def test_random_uids_only_difference(self):
        first = run_migration(self._legacy(), InMemoryConfigStore())
        second = run_migration(self._legacy(), InMemoryConfigStore())

        def _without_uids(result):
            d = result.config.to_dict()
            for r in d["receivers"]:
                for i in r["integrations"]:
                    i.pop("uid")
            return d

        for a, b in zip(first.org_results, second.org_results):
            assert _without_uids(a) == _without_uids(b)

    def test_empty_legacy_store(self):
        store = InMemoryConfigStore()
        report = run_migration(InMemoryLegacyStore(), store)
        assert report.success is True
        assert report.org_results == []
        assert store.commit_count == 1


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Stores
# ═══════════════════════════════════════════════════════════════════════════

class TestStores:

    def test_legacy_store_groups_by_org(self):
        store = InMemoryLegacyStore(
            channels=[_make_channel("a", 1, "A", org_id=3)],
            alerts=[_make_alert(1, [], org_id=5)],
        )
        assert store.list_org_ids() == [3, 5]
        assert [c.name for c in store.fetch_legacy_channels(3)] == ["A"]
        assert store.fetch_legacy_channels(5) == []

    def test_config_store_keeps_copies(self):
        result = migrate_org(1, _org_channels(), [])
        store = InMemoryConfigStore()
        store.save({1: result.config}, {1: {}})
        result.config.receivers.clear()
        assert store.get(1).receiver_names() == ["A", "B", "C"]


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Wire Format
# ═══════════════════════════════════════════════════════════════════════════

class TestPostableConfig:

    def test_route_layout(self):
        result = migrate_org(1, _org_channels(), _org_alerts(), _uids())
        doc = to_postable_config(result.config).to_json_dict()
        route = doc["alertmanager_config"]["route"]

        assert route["receiver"] == "A"
        assert route["group_by"] == ["grafana_folder", "alertname"]
        assert "object_matchers" not in route
        assert route["routes"][1] == {
            "receiver": "B",
            "object_matchers": [[CONTACT_LABEL, "=~", '.*"B".*']],
            "continue": True,
        }

    def test_receiver_layout(self):
        channels = [_make_channel(
            "s", 1, "Slack", type="slack",
            settings={"url": "https://hooks", "recipient": "#ops"},
            disable_resolve_message=True,
        )]
        result = migrate_org(1, channels, [], _uids())
        doc = to_postable_config(result.config).to_json_dict()
        receiver = doc["alertmanager_config"]["receivers"][0]

        assert receiver == {
            "name": "Slack",
            "grafana_managed_receiver_configs": [{
                "uid": "int-1",
                "name": "Slack",
                "type": "slack",
                "disableResolveMessage": True,
                "settings": {"recipient": "#ops"},
                "secureSettings": {"url": "https://hooks"},
            }],
        }
        assert doc["template_files"] == {}


# ═══════════════════════════════════════════════════════════════════════════
# Section 5: HTTP Endpoints
# ═══════════════════════════════════════════════════════════════════════════

def _run_body(**org_overrides):
    org = {
        "org_id": 1,
        "channels": [
            {"id": 1, "uid": "a", "name": "A", "type": "email", "is_default": True},
            {"id": 2, "uid": "b", "name": "B", "type": "slack",
             "settings": '{"url": "https://hooks"}'},
        ],
        "alerts": [
            {"id": 10, "title": "CPU", "channel_refs": [2]},
            {"id": 11, "title": "Disk", "channel_refs": ["nope"]},
        ],
    }
    org.update(org_overrides)
    return {"orgs": [org]}


class TestMigrationEndpoints:

    def test_run_returns_report_and_config(self, client):
        resp = client.post("/api/v1/migration/run", json=_run_body())
        assert resp.status_code == 200
        body = resp.json()

        assert body["success"] is True
        assert body["alert_labels"]["1"]["10"] == {CONTACT_LABEL: '"A","B"'}
        assert [s["alert_id"] for s in body["skipped_alerts"]] == [11]
        route = body["configs"]["1"]["alertmanager_config"]["route"]
        assert [r["receiver"] for r in route["routes"]] == ["A", "B"]

    def test_config_persisted(self, client):
        client.post("/api/v1/migration/run", json=_run_body())
        resp = client.get("/api/v1/migration/orgs/1/config")
        assert resp.status_code == 200
        receivers = resp.json()["alertmanager_config"]["receivers"]
        assert [r["name"] for r in receivers] == ["A", "B"]

    def test_missing_config_404(self, client):
        resp = client.get("/api/v1/migration/orgs/99/config")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    def test_fatal_error_envelope(self, client):
        body = _run_body(channels=[
            {"id": 1, "uid": "a", "name": "A", "type": "email"},
            {"id": 2, "uid": "b", "name": "A", "type": "email"},
        ])
        resp = client.post("/api/v1/migration/run", json=body)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "DUPLICATE_RECEIVER_NAME"
        assert client.get("/api/v1/migration/orgs/1/config").status_code == 404

    def test_bad_settings_envelope(self, client):
        body = _run_body(channels=[
            {"id": 1, "uid": "a", "name": "A", "type": "webhook",
             "secure_settings": {"password": 123}},
        ])
        resp = client.post("/api/v1/migration/run", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "INTEGRATION_CONVERSION_ERROR"

    def test_request_validation(self, client):
        resp = client.post("/api/v1/migration/run", json={"orgs": []})
        assert resp.status_code == 422

    def test_health(self, client):
        resp = client.get("/api/v1/migration/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_liveness(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}
