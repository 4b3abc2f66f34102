"""dashboard_api/lambda_function.py

Lambda API handler for the Prometheus dashboard.
Proxies dashboard reads and writes to the document store: agent status, lead
metrics, alerts, workflows and ROI figures.

Routes (via API Gateway proxy or the Netlify function path):
    GET  /api/agents                 — Agent status derived from heartbeats
    POST /api/agents/{id}/command    — Acknowledge (log) an agent command
    GET  /api/leads/metrics          — Lead totals, today, pending, hot, conversion
    GET  /api/alerts/active          — Latest 50 unresolved alerts + summary
    POST /api/alerts/{id}/resolve    — Mark an alert resolved
    GET  /api/workflows              — Workflow list
    POST /api/workflows              — Create a workflow
    POST /api/roi/calculate          — Annualised ROI estimate
    OPTIONS *                        — CORS preflight

Environment variables:
    DYNAMODB_REGION               default: us-west-2
    DASHBOARD_STORE_PROJECT_ID    table-name prefix (optional)
    DASHBOARD_STORE_CLIENT_ID     access key id (optional)
    DASHBOARD_STORE_PRIVATE_KEY   secret key, literal \\n normalised (optional)
    AGENTS_TABLE                  default: prometheus_agents
    LEADS_TABLE                   default: leads
    ALERTS_TABLE                  default: system_alerts
    WORKFLOWS_TABLE               default: workflows
    DASHBOARD_API_PATH_PREFIX     default: /api
    DASHBOARD_ACTOR               default: dashboard_user
"""

from __future__ import annotations

import datetime as dt
import time
from typing import Any, Callable, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from aws_clients import _get_store
from config import API_PATH_PREFIX, DEFAULT_ACTOR, NETLIFY_FUNCTION_PREFIX, logger
from handlers import (
    RequestContext,
    _handle_agent_command,
    _handle_calculate_roi,
    _handle_create_workflow,
    _handle_get_agents,
    _handle_get_alerts,
    _handle_get_lead_metrics,
    _handle_get_workflows,
    _handle_resolve_alert,
)
from http_utils import _error, _not_found, _ok, _path_method, _preflight, _raw_body
from routing import Route, _match_route, _split_path
from serialization import _emit_structured_observability

# ---------------------------------------------------------------------------
# Route table (first match wins)
# ---------------------------------------------------------------------------

ROUTES = (
    Route("GET", ("agents",), _handle_get_agents),
    Route("POST", ("agents", "{agent_id}", "command"), _handle_agent_command),
    Route("GET", ("leads", "metrics"), _handle_get_lead_metrics),
    Route("GET", ("alerts", "active"), _handle_get_alerts),
    Route("POST", ("alerts", "{alert_id}", "resolve"), _handle_resolve_alert),
    Route("GET", ("workflows",), _handle_get_workflows),
    Route("POST", ("workflows",), _handle_create_workflow),
    Route("POST", ("roi", "calculate"), _handle_calculate_roi),
)

_PATH_PREFIXES = (NETLIFY_FUNCTION_PREFIX, API_PATH_PREFIX)


def _dispatch(
    event: Dict[str, Any],
    get_store: Callable[[], Any],
    *,
    actor: str = DEFAULT_ACTOR,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """Route one request and build the response envelope.

    ``get_store`` is only called once a route has matched, so preflight and
    404 responses never depend on store setup.
    """
    method, path = _path_method(event)
    if method == "OPTIONS":
        return _preflight()

    matched = _match_route(ROUTES, method, _split_path(path, _PATH_PREFIXES))
    if matched is None:
        logger.info("[INFO] no route for %s %s", method, path)
        return _not_found()
    route, params = matched

    try:
        ctx = RequestContext(
            store=get_store(),
            actor=actor,
            now=now or dt.datetime.now(dt.timezone.utc),
            body=_raw_body(event),
        )
        return _ok(route.handler(ctx, **params))
    except (ClientError, BotoCoreError) as exc:
        logger.error("[ERROR] store error on %s %s: %s", method, path, exc, exc_info=True)
        return _error(500, str(exc))
    except Exception as exc:
        logger.error("[ERROR] %s %s failed: %s", method, path, exc, exc_info=True)
        return _error(500, str(exc))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Main Lambda entry point."""
    started = time.monotonic()
    method, path = _path_method(event)
    logger.info("[INFO] route method=%s path=%s", method, path)

    resp = _dispatch(event, _get_store)

    _emit_structured_observability(
        component="dashboard_api",
        event="request",
        method=method,
        path=path,
        status_code=resp["statusCode"],
        latency_ms=int((time.monotonic() - started) * 1000),
        error_code="" if resp["statusCode"] < 400 else str(resp["statusCode"]),
    )
    return resp
