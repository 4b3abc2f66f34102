"""Unit tests for dashboard handlers against the in-memory store.

Run: python3 -m pytest test_handlers.py -v
"""

from __future__ import annotations

import datetime as dt
import json
import os
import sys
import time

import pytest

sys.path.insert(0, os.path.dirname(__file__))

import handlers
from fake_store import InMemoryStore
from handlers import RequestContext
from serialization import _iso_z

NOW = dt.datetime(2026, 10, 16, 12, 0, 0, tzinfo=dt.timezone.utc)


def _ago(**kwargs) -> str:
    return _iso_z(NOW - dt.timedelta(**kwargs))


def _ctx(store: InMemoryStore, body: str | None = None, actor: str = "dashboard_user") -> RequestContext:
    return RequestContext(store=store, actor=actor, now=NOW, body=body)


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "healthy"),
        (59, "healthy"),
        (60, "degraded"),
        (299, "degraded"),
        (300, "offline"),
        (86400, "offline"),
    ],
)
def test_agent_status_thresholds(seconds, expected):
    assert handlers._agent_status(seconds) == expected


def test_agent_without_metrics_uses_defaults():
    store = InMemoryStore({"prometheus_agents": [{"id": "agent_x", "last_heartbeat": _ago(seconds=90)}]})

    payload = handlers._handle_get_agents(_ctx(store))

    agent = payload["agents"]["agent_x"]
    assert agent["status"] == "degraded"
    assert agent["uptime"] == "0.0 hours"
    assert agent["tasksCompleted"] == 0
    assert agent["errorRate"] == 0
    assert agent["version"] == "1.0.0"
    assert agent["capabilities"] == []
    assert agent["metrics"] == {}
    assert agent["name"] == "Agent_x"
    assert agent["description"] == "agent_x Agent"
    assert agent["lastHeartbeat"] == _ago(seconds=90)
    assert payload["timestamp"] == "2026-10-16T12:00:00Z"


def test_agent_stored_status_is_ignored():
    store = InMemoryStore({
        "prometheus_agents": [
            {
                "id": "scout",
                "status": "healthy",
                "version": "2.3.1",
                "capabilities": ["research", "scoring"],
                "metrics": {"uptime_hours": 12.5, "tasks_completed": 40, "error_rate": 0.02},
                "last_heartbeat": _ago(minutes=10),
            }
        ]
    })

    agent = handlers._handle_get_agents(_ctx(store))["agents"]["scout"]

    assert agent["status"] == "offline"
    assert agent["version"] == "2.3.1"
    assert agent["uptime"] == "12.5 hours"
    assert agent["tasksCompleted"] == 40
    assert agent["errorRate"] == 0.02
    assert agent["capabilities"] == ["research", "scoring"]


def test_agent_missing_heartbeat_counts_as_now():
    store = InMemoryStore({"prometheus_agents": [{"id": "closer"}]})

    agent = handlers._handle_get_agents(_ctx(store))["agents"]["closer"]

    assert agent["status"] == "healthy"
    assert agent["lastHeartbeat"] == "2026-10-16T12:00:00Z"


def test_agent_heartbeat_as_epoch_seconds():
    store = InMemoryStore({
        "prometheus_agents": [{"id": "scout", "last_heartbeat": int(NOW.timestamp()) - 30}]
    })

    agent = handlers._handle_get_agents(_ctx(store))["agents"]["scout"]

    assert agent["status"] == "healthy"


def test_agent_unparseable_heartbeat_is_offline(caplog):
    store = InMemoryStore({"prometheus_agents": [{"id": "scout", "last_heartbeat": "yesterday-ish"}]})

    agent = handlers._handle_get_agents(_ctx(store))["agents"]["scout"]

    assert agent["status"] == "offline"
    assert agent["lastHeartbeat"] is None
    assert any("yesterday-ish" in rec.getMessage() for rec in caplog.records)


def test_agent_command_echoes_command_and_persists_nothing(caplog):
    store = InMemoryStore()

    with caplog.at_level("INFO"):
        payload = handlers._handle_agent_command(_ctx(store, body='{"command": "restart"}'), "scout")

    assert payload == {"message": "Command sent to scout", "command": "restart"}
    assert store.calls == []
    assert any("scout" in rec.getMessage() and "restart" in rec.getMessage() for rec in caplog.records)


def test_agent_command_empty_body_has_no_command():
    payload = handlers._handle_agent_command(_ctx(InMemoryStore(), body=None), "scout")
    assert payload["command"] is None


def test_agent_command_malformed_body_raises():
    with pytest.raises(json.JSONDecodeError, match="Expecting property name"):
        handlers._handle_agent_command(_ctx(InMemoryStore(), body="{not json"), "scout")


# ---------------------------------------------------------------------------
# Leads
# ---------------------------------------------------------------------------


def _lead(lead_id: str, status: str = "NEW", score=0.5, created=None) -> dict:
    return {"id": lead_id, "status": status, "score": score, "created": created or _ago(days=3)}


def test_lead_metrics_counts():
    store = InMemoryStore({
        "leads": [
            _lead("l1", "PENDING_RESEARCH", 0.9, created=_iso_z(NOW)),
            _lead("l2", "PENDING_RESEARCH", 0.8),
            _lead("l3", "CONVERTED", 0.95),
            _lead("l4", "CONVERTED", 0.3, created=_iso_z(NOW)),
            _lead("l5", "CONVERTED", None),
            _lead("l6", "QUALIFIED", 0.81),
            _lead("l7"),
            _lead("l8"),
            _lead("l9"),
            _lead("l10", score="0.99"),
        ]
    })

    payload = handlers._handle_get_lead_metrics(_ctx(store))

    assert payload["metrics"] == {
        "total": 10,
        "today": 2,
        "pending": 2,
        "hot": 3,
        "conversionRate": "30.0",
    }
    assert payload["timestamp"] == "2026-10-16T12:00:00Z"


def test_lead_metrics_issue_independent_queries():
    store = InMemoryStore({"leads": [_lead("l1")]})

    handlers._handle_get_lead_metrics(_ctx(store))

    kinds = [call[0] for call in store.calls]
    assert kinds == ["get_all", "query", "query"]


@pytest.fixture
def eastern_time(monkeypatch):
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "EST5EDT,M3.2.0,M11.1.0")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


def test_lead_metrics_today_compares_mixed_formats_by_time(eastern_time):
    midnight = dt.datetime.combine(NOW.astimezone().date(), dt.time()).astimezone()
    store = InMemoryStore({
        "leads": [
            _lead("epoch_today", created=int(NOW.timestamp()) - 60),
            _lead("offset_today", created=(NOW - dt.timedelta(minutes=5)).astimezone(
                dt.timezone(dt.timedelta(hours=-10))).isoformat()),
            _lead("fraction_today", created="2026-10-16T11:59:00.250Z"),
            _lead("epoch_old", created=int(midnight.timestamp()) - 1),
            _lead("garbled", created="not a date"),
        ]
    })

    payload = handlers._handle_get_lead_metrics(_ctx(store))

    assert payload["metrics"]["today"] == 3


def test_lead_metrics_today_starts_at_local_midnight_across_dst_change(eastern_time):
    # 2026-11-01 is the fall-back day: midnight is still EDT (04:00Z) while
    # the afternoon is EST.
    now = dt.datetime(2026, 11, 1, 15, 0, 0, tzinfo=dt.timezone.utc)
    store = InMemoryStore({
        "leads": [
            _lead("after_midnight", created="2026-11-01T04:30:00Z"),
            _lead("before_midnight", created="2026-11-01T03:59:00Z"),
        ]
    })

    payload = handlers._handle_get_lead_metrics(RequestContext(store=store, now=now))

    assert payload["metrics"]["today"] == 1


def test_lead_metrics_without_leads():
    payload = handlers._handle_get_lead_metrics(_ctx(InMemoryStore()))
    assert payload["metrics"]["total"] == 0
    assert payload["metrics"]["conversionRate"] == "0.0"


@pytest.mark.parametrize(
    "converted, total, expected",
    [(0, 0, "0.0"), (3, 10, "30.0"), (1, 3, "33.3"), (2, 3, "66.7"), (5, 5, "100.0")],
)
def test_conversion_rate(converted, total, expected):
    assert handlers._conversion_rate(converted, total) == expected


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


def test_active_alerts_shape_and_summary():
    store = InMemoryStore({
        "system_alerts": [
            {"id": "a1", "severity": "critical", "message": "Scout down", "agent_id": "scout",
             "timestamp": _ago(minutes=1), "resolved": False},
            {"id": "a2", "severity": "warning", "message": "Slow", "timestamp": _ago(minutes=5),
             "resolved": False},
            {"id": "a3", "message": "FYI", "timestamp": _ago(minutes=3), "resolved": False},
            {"id": "a4", "severity": "emergency", "message": "??", "timestamp": _ago(minutes=4),
             "resolved": False},
            {"id": "a5", "severity": "critical", "message": "old", "timestamp": _ago(minutes=2),
             "resolved": True},
        ]
    })

    payload = handlers._handle_get_alerts(_ctx(store))

    assert [a["id"] for a in payload["alerts"]] == ["a1", "a3", "a4", "a2"]
    first = payload["alerts"][0]
    assert first == {
        "id": "a1",
        "severity": "critical",
        "message": "Scout down",
        "agent": "scout",
        "timestamp": _ago(minutes=1),
    }
    assert payload["alerts"][1]["severity"] == "info"
    assert payload["alerts"][1]["agent"] == "system"
    assert payload["summary"] == {"total": 4, "critical": 1, "warning": 1, "info": 1}


def test_active_alerts_capped_at_fifty():
    store = InMemoryStore({
        "system_alerts": [
            {"id": f"a{i}", "severity": "info", "message": str(i), "timestamp": _ago(minutes=i),
             "resolved": False}
            for i in range(60)
        ]
    })

    payload = handlers._handle_get_alerts(_ctx(store))

    assert len(payload["alerts"]) == 50
    assert payload["alerts"][0]["id"] == "a0"
    assert payload["alerts"][-1]["id"] == "a49"
    assert payload["summary"]["total"] == 50


def test_active_alerts_order_mixed_formats_by_time():
    store = InMemoryStore({
        "system_alerts": [
            {"id": "whole", "message": "m", "timestamp": "2026-10-16T11:59:00Z", "resolved": False},
            {"id": "offset", "message": "m", "timestamp": "2026-10-16T13:00:00+02:00", "resolved": False},
            {"id": "undated", "message": "m", "resolved": False},
            {"id": "epoch", "message": "m", "timestamp": int(NOW.timestamp()) - 1, "resolved": False},
            {"id": "fraction", "message": "m", "timestamp": "2026-10-16T11:59:00.500Z", "resolved": False},
        ]
    })

    alerts = handlers._handle_get_alerts(_ctx(store))["alerts"]

    assert [a["id"] for a in alerts] == ["epoch", "fraction", "whole", "offset", "undated"]
    assert alerts[0]["timestamp"] == "2026-10-16T11:59:59Z"
    assert alerts[3]["timestamp"] == "2026-10-16T11:00:00Z"


def test_fresh_epoch_alert_survives_the_cap():
    alerts = [
        {"id": f"a{i}", "message": str(i), "timestamp": _ago(minutes=i + 1), "resolved": False}
        for i in range(50)
    ]
    alerts.append({"id": "fresh", "message": "new", "timestamp": int(NOW.timestamp()), "resolved": False})
    store = InMemoryStore({"system_alerts": alerts})

    ids = [a["id"] for a in handlers._handle_get_alerts(_ctx(store))["alerts"]]

    assert len(ids) == 50
    assert ids[0] == "fresh"
    assert "a49" not in ids


def test_active_alert_without_timestamp_uses_now():
    store = InMemoryStore({"system_alerts": [{"id": "a1", "message": "m", "resolved": False}]})

    alert = handlers._handle_get_alerts(_ctx(store))["alerts"][0]

    assert alert["timestamp"] == "2026-10-16T12:00:00Z"


def test_resolve_alert_is_idempotent():
    store = InMemoryStore({"system_alerts": [{"id": "a1", "resolved": False}]})
    ctx = _ctx(store, actor="ops_lead")

    first = handlers._handle_resolve_alert(ctx, "a1")
    second = handlers._handle_resolve_alert(ctx, "a1")

    assert first == second == {"message": "Alert a1 resolved"}
    doc = store.get("system_alerts", "a1")
    assert doc["resolved"] is True
    assert doc["resolved_by"] == "ops_lead"
    assert doc["resolved_at"] == "2026-10-16T12:00:00Z"


def test_resolve_unknown_alert_propagates_store_error():
    from botocore.exceptions import ClientError

    with pytest.raises(ClientError):
        handlers._handle_resolve_alert(_ctx(InMemoryStore()), "missing")


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


def test_workflow_list_defaults():
    store = InMemoryStore({
        "workflows": [
            {"id": "w1", "name": "Lead intake", "status": "active", "steps": [{"a": 1}, {"b": 2}],
             "completed_today": 7, "created": "2026-10-01T08:30:00Z"},
            {"id": "w2"},
        ]
    })

    workflows = {w["id"]: w for w in handlers._handle_get_workflows(_ctx(store))["workflows"]}

    assert workflows["w1"] == {
        "id": "w1",
        "name": "Lead intake",
        "status": "active",
        "steps": 2,
        "completedToday": 7,
        "created": "2026-10-01T08:30:00Z",
    }
    assert workflows["w2"] == {
        "id": "w2",
        "name": "Unnamed Workflow",
        "status": "inactive",
        "steps": 0,
        "completedToday": 0,
        "created": None,
    }


def test_create_workflow_forces_server_fields():
    store = InMemoryStore()
    body = (
        '{"name": "Nurture", "trigger": "lead_created", "steps": ["research", "email"],'
        ' "status": "paused", "completed_today": 99, "created": "1999-01-01T00:00:00Z",'
        ' "created_by": "mallory"}'
    )

    payload = handlers._handle_create_workflow(_ctx(store, body=body))

    assert payload["message"] == "Workflow created successfully"
    doc = store.get("workflows", payload["workflow_id"])
    assert doc["status"] == "active"
    assert doc["completed_today"] == 0
    assert doc["created"] == "2026-10-16T12:00:00Z"
    assert doc["created_by"] == "dashboard_user"
    assert doc["name"] == "Nurture"
    assert doc["trigger"] == "lead_created"
    assert doc["steps"] == ["research", "email"]
    assert doc["description"] == ""


def test_create_workflow_malformed_body_uses_defaults():
    store = InMemoryStore()

    payload = handlers._handle_create_workflow(_ctx(store, body="not json"))

    doc = store.get("workflows", payload["workflow_id"])
    assert doc["name"] == "New Workflow"
    assert doc["trigger"] == "manual"
    assert doc["steps"] == []
    assert doc["status"] == "active"


# ---------------------------------------------------------------------------
# ROI
# ---------------------------------------------------------------------------


def test_roi_figures_example():
    roi = handlers._roi_figures(agents_count=2, total_leads=100, converted_leads=15)

    total = 3735000 + 15 * 5000 * 12
    assert roi["cost_savings_annual"] == 3735000
    assert roi["revenue_from_leads_annual"] == 900000
    assert roi["total_roi_annual"] == total
    assert roi["roi_multiple"] == f"{total / 50000:.1f}" == "92.7"
    assert roi["time_saved_hours_annual"] == 49800
    assert roi["conversion_rate"] == "15.0"
    assert roi["agents_deployed"] == 2
    assert roi["total_leads_processed"] == 100
    assert roi["leads_converted"] == 15


def test_roi_without_leads_uses_assumed_rate():
    roi = handlers._roi_figures(agents_count=0, total_leads=0, converted_leads=0)
    assert roi["conversion_rate"] == "15.0"
    assert roi["revenue_from_leads_annual"] == 0
    assert roi["roi_multiple"] == "74.7"


def test_calculate_roi_reads_live_counts():
    store = InMemoryStore({
        "prometheus_agents": [{"id": "scout"}, {"id": "closer"}],
        "leads": [_lead(f"l{i}", "CONVERTED" if i < 15 else "NEW") for i in range(100)],
    })

    roi = handlers._handle_calculate_roi(_ctx(store))["roi"]

    assert roi["agents_deployed"] == 2
    assert roi["total_leads_processed"] == 100
    assert roi["leads_converted"] == 15
    assert roi["revenue_from_leads_annual"] == 900000
