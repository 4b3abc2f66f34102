"""handlers.py — Dashboard route handlers: agents, leads, alerts, workflows, ROI.

Each handler takes a RequestContext plus any path parameters and returns the
handler-specific payload; the caller adds the success envelope. Store calls
are issued one after another and any store error propagates to the caller.

Part of the Prometheus dashboard API Lambda.
"""
from __future__ import annotations

import datetime as dt
import json
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from config import (
    AGENTS_TABLE,
    AGENT_DEGRADED_AFTER_SECONDS,
    AGENT_OFFLINE_AFTER_SECONDS,
    ALERTS_LIMIT,
    ALERTS_TABLE,
    DEFAULT_ACTOR,
    DEFAULT_AGENT_VERSION,
    HOT_LEAD_SCORE,
    LEADS_TABLE,
    LEAD_STATUS_CONVERTED,
    LEAD_STATUS_PENDING_RESEARCH,
    ROI_ASSUMED_CONVERSION_RATE,
    ROI_AVERAGE_DEAL_VALUE,
    ROI_HOURLY_RATE,
    ROI_HOURS_SAVED_PER_TASK,
    ROI_INVESTMENT_BASELINE,
    ROI_MONTHS_PER_YEAR,
    ROI_PLACEHOLDER_TASKS,
    SYSTEM_AGENT,
    WORKFLOWS_TABLE,
    logger,
)
from http_utils import _json_body, _parse_body
from serialization import _iso_z, _parse_timestamp

__all__ = [
    "RequestContext",
    "_agent_status",
    "_conversion_rate",
    "_handle_agent_command",
    "_handle_calculate_roi",
    "_handle_create_workflow",
    "_handle_get_agents",
    "_handle_get_alerts",
    "_handle_get_lead_metrics",
    "_handle_get_workflows",
    "_handle_resolve_alert",
    "_roi_figures",
]

_SEVERITIES = ("critical", "warning", "info")


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class RequestContext:
    """Per-request collaborators handed to every handler."""

    store: Any
    actor: str = DEFAULT_ACTOR
    now: dt.datetime = field(default_factory=_utc_now)
    body: Optional[str] = None


# ---------------------------------------------------------------------------
# Derivations
# ---------------------------------------------------------------------------


def _agent_status(seconds_since_heartbeat: float) -> str:
    if seconds_since_heartbeat < AGENT_DEGRADED_AFTER_SECONDS:
        return "healthy"
    if seconds_since_heartbeat < AGENT_OFFLINE_AFTER_SECONDS:
        return "degraded"
    return "offline"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _conversion_rate(converted: int, total: int) -> str:
    """Percentage of converted leads with one decimal; "0.0" without leads."""
    if total <= 0:
        return f"{0:.1f}"
    return f"{converted / total * 100:.1f}"


def _roi_figures(agents_count: int, total_leads: int, converted_leads: int) -> Dict[str, Any]:
    """Annualised ROI estimate from live counts and fixed business constants."""
    hours_saved = ROI_PLACEHOLDER_TASKS * ROI_HOURS_SAVED_PER_TASK
    cost_savings = hours_saved * ROI_HOURLY_RATE * ROI_MONTHS_PER_YEAR
    lead_revenue = converted_leads * ROI_AVERAGE_DEAL_VALUE * ROI_MONTHS_PER_YEAR
    total_roi = cost_savings + lead_revenue
    rate = converted_leads / total_leads if total_leads > 0 else ROI_ASSUMED_CONVERSION_RATE
    return {
        "agents_deployed": agents_count,
        "total_leads_processed": total_leads,
        "leads_converted": converted_leads,
        "conversion_rate": f"{rate * 100:.1f}",
        "time_saved_hours_annual": _round_half_up(hours_saved * ROI_MONTHS_PER_YEAR),
        "cost_savings_annual": _round_half_up(cost_savings),
        "revenue_from_leads_annual": _round_half_up(lead_revenue),
        "total_roi_annual": _round_half_up(total_roi),
        "roi_multiple": f"{total_roi / ROI_INVESTMENT_BASELINE:.1f}",
    }


def _created_since(lead: Dict[str, Any], start: dt.datetime) -> bool:
    created = _parse_timestamp(lead.get("created"))
    return created is not None and created >= start


def _shape_agent(doc: Dict[str, Any], now: dt.datetime) -> Dict[str, Any]:
    agent_id = str(doc.get("id") or "")
    metrics = doc.get("metrics") if isinstance(doc.get("metrics"), dict) else {}
    raw_heartbeat = doc.get("last_heartbeat")
    if raw_heartbeat is None or raw_heartbeat == "":
        last_heartbeat = now
    else:
        last_heartbeat = _parse_timestamp(raw_heartbeat)
        if last_heartbeat is None:
            logger.warning("agent %s has unparseable last_heartbeat %r", agent_id, raw_heartbeat)
    if last_heartbeat is None:
        status = "offline"
    else:
        status = _agent_status((now - last_heartbeat).total_seconds())
    uptime_hours = metrics.get("uptime_hours")
    uptime_hours = float(uptime_hours) if _is_number(uptime_hours) else 0.0
    return {
        "id": agent_id,
        "name": agent_id[:1].upper() + agent_id[1:],
        "version": doc.get("version") or DEFAULT_AGENT_VERSION,
        "status": status,
        "description": doc.get("description") or f"{agent_id} Agent",
        "uptime": f"{uptime_hours:.1f} hours",
        "tasksCompleted": metrics.get("tasks_completed") or 0,
        "errorRate": metrics.get("error_rate") or 0,
        "lastHeartbeat": _iso_z(last_heartbeat) if last_heartbeat else None,
        "capabilities": doc.get("capabilities") or [],
        "metrics": metrics,
    }


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


def _handle_get_agents(ctx: RequestContext) -> Dict[str, Any]:
    """GET /agents"""
    agents: Dict[str, Dict[str, Any]] = {}
    for doc in ctx.store.get_all(AGENTS_TABLE):
        record = _shape_agent(doc, ctx.now)
        agents[record["id"]] = record
    return {"agents": agents, "timestamp": _iso_z(ctx.now)}


def _handle_agent_command(ctx: RequestContext, agent_id: str) -> Dict[str, Any]:
    """POST /agents/{id}/command

    Acknowledge-only: the command is logged, never persisted or forwarded.
    Malformed JSON raises and becomes a 500.
    """
    payload = _json_body(ctx.body)
    logger.info(
        "[INFO] command for agent=%s: %s",
        agent_id,
        json.dumps(payload, sort_keys=True, default=str),
    )
    command = payload.get("command") if isinstance(payload, dict) else None
    return {
        "message": f"Command sent to {agent_id}",
        "command": command,
    }


# ---------------------------------------------------------------------------
# Leads
# ---------------------------------------------------------------------------


def _handle_get_lead_metrics(ctx: RequestContext) -> Dict[str, Any]:
    """GET /leads/metrics

    The status counts are their own queries, so concurrent writes can make
    the numbers disagree slightly with one another. "today" is counted from
    the full scan so epoch and offset ISO ``created`` values are compared by
    time rather than as strings.
    """
    # Local midnight built from the date, not by replacing the hour, so the
    # offset is resolved for midnight itself on DST transition days.
    local_now = ctx.now.astimezone()
    today_start = dt.datetime.combine(local_now.date(), dt.time()).astimezone()

    all_leads = ctx.store.get_all(LEADS_TABLE)
    total = len(all_leads)
    today = sum(1 for lead in all_leads if _created_since(lead, today_start))
    pending = len(ctx.store.query(LEADS_TABLE, [("status", "==", LEAD_STATUS_PENDING_RESEARCH)]))
    hot = sum(
        1 for lead in all_leads
        if _is_number(lead.get("score")) and lead["score"] > HOT_LEAD_SCORE
    )
    converted = len(ctx.store.query(LEADS_TABLE, [("status", "==", LEAD_STATUS_CONVERTED)]))

    return {
        "metrics": {
            "total": total,
            "today": today,
            "pending": pending,
            "hot": hot,
            "conversionRate": _conversion_rate(converted, total),
        },
        "timestamp": _iso_z(ctx.now),
    }


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


def _handle_get_alerts(ctx: RequestContext) -> Dict[str, Any]:
    """GET /alerts/active"""
    docs = ctx.store.query(
        ALERTS_TABLE,
        [("resolved", "==", False)],
        order_by="timestamp",
        descending=True,
        limit=ALERTS_LIMIT,
    )
    alerts: List[Dict[str, Any]] = []
    for doc in docs:
        stamp = _parse_timestamp(doc.get("timestamp")) or ctx.now
        alerts.append({
            "id": doc.get("id"),
            "severity": doc.get("severity") or "info",
            "message": doc.get("message"),
            "agent": doc.get("agent_id") or SYSTEM_AGENT,
            "timestamp": _iso_z(stamp),
        })

    summary: Dict[str, int] = {"total": len(alerts)}
    for severity in _SEVERITIES:
        summary[severity] = sum(1 for alert in alerts if alert["severity"] == severity)
    return {"alerts": alerts, "summary": summary}


def _handle_resolve_alert(ctx: RequestContext, alert_id: str) -> Dict[str, Any]:
    """POST /alerts/{id}/resolve — unconditional, so resolving twice is fine."""
    ctx.store.update(ALERTS_TABLE, alert_id, {
        "resolved": True,
        "resolved_at": _iso_z(ctx.now),
        "resolved_by": ctx.actor,
    })
    logger.info("[INFO] alert %s resolved by %s", alert_id, ctx.actor)
    return {"message": f"Alert {alert_id} resolved"}


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


def _handle_get_workflows(ctx: RequestContext) -> Dict[str, Any]:
    """GET /workflows"""
    workflows: List[Dict[str, Any]] = []
    for doc in ctx.store.get_all(WORKFLOWS_TABLE):
        steps = doc.get("steps")
        created = _parse_timestamp(doc.get("created"))
        workflows.append({
            "id": doc.get("id"),
            "name": doc.get("name") or "Unnamed Workflow",
            "status": doc.get("status") or "inactive",
            "steps": len(steps) if isinstance(steps, list) else 0,
            "completedToday": doc.get("completed_today") or 0,
            "created": _iso_z(created) if created else None,
        })
    return {"workflows": workflows}


def _handle_create_workflow(ctx: RequestContext) -> Dict[str, Any]:
    """POST /workflows

    Caller input only fills name/description/trigger/steps; status,
    created, created_by and completed_today are always set here.
    """
    data = _parse_body(ctx.body)
    workflow = {
        "name": data.get("name") or "New Workflow",
        "description": data.get("description") or "",
        "trigger": data.get("trigger") or "manual",
        "steps": data.get("steps") or [],
        "status": "active",
        "created": _iso_z(ctx.now),
        "created_by": ctx.actor,
        "completed_today": 0,
    }
    workflow_id = ctx.store.add(WORKFLOWS_TABLE, workflow)
    logger.info("[INFO] workflow %s created by %s", workflow_id, ctx.actor)
    return {
        "workflow_id": workflow_id,
        "message": "Workflow created successfully",
    }


# ---------------------------------------------------------------------------
# ROI
# ---------------------------------------------------------------------------


def _handle_calculate_roi(ctx: RequestContext) -> Dict[str, Any]:
    """POST /roi/calculate"""
    agents_count = len(ctx.store.get_all(AGENTS_TABLE))
    total_leads = len(ctx.store.get_all(LEADS_TABLE))
    converted_leads = len(ctx.store.query(LEADS_TABLE, [("status", "==", LEAD_STATUS_CONVERTED)]))
    return {"roi": _roi_figures(agents_count, total_leads, converted_leads)}
