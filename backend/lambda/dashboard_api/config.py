"""config.py — Central configuration — environment variables, business constants, logging.

Part of the Prometheus dashboard API Lambda.
"""
from __future__ import annotations

import logging
import os

__all__ = [
    "AGENTS_TABLE",
    "ALERTS_LIMIT",
    "ALERTS_TABLE",
    "API_PATH_PREFIX",
    "AGENT_DEGRADED_AFTER_SECONDS",
    "AGENT_OFFLINE_AFTER_SECONDS",
    "CORS_HEADERS",
    "DEFAULT_ACTOR",
    "DEFAULT_AGENT_VERSION",
    "DYNAMODB_REGION",
    "HOT_LEAD_SCORE",
    "LEADS_TABLE",
    "LEAD_STATUS_CONVERTED",
    "LEAD_STATUS_PENDING_RESEARCH",
    "NETLIFY_FUNCTION_PREFIX",
    "ROI_ASSUMED_CONVERSION_RATE",
    "ROI_AVERAGE_DEAL_VALUE",
    "ROI_HOURLY_RATE",
    "ROI_HOURS_SAVED_PER_TASK",
    "ROI_INVESTMENT_BASELINE",
    "ROI_MONTHS_PER_YEAR",
    "ROI_PLACEHOLDER_TASKS",
    "STORE_CLIENT_ID",
    "STORE_PRIVATE_KEY",
    "STORE_PROJECT_ID",
    "SYSTEM_AGENT",
    "WORKFLOWS_TABLE",
    "logger",
]


def _normalize_private_key(raw: str) -> str:
    """Turn literal ``\\n`` sequences from single-line env values into newlines."""
    return (raw or "").replace("\\n", "\n").strip()


# ---------------------------------------------------------------------------
# Store access
# ---------------------------------------------------------------------------

DYNAMODB_REGION = os.environ.get("DYNAMODB_REGION", "us-west-2")
STORE_PROJECT_ID = os.environ.get("DASHBOARD_STORE_PROJECT_ID", "").strip()
STORE_CLIENT_ID = os.environ.get("DASHBOARD_STORE_CLIENT_ID", "").strip()
STORE_PRIVATE_KEY = _normalize_private_key(os.environ.get("DASHBOARD_STORE_PRIVATE_KEY", ""))

AGENTS_TABLE = os.environ.get("AGENTS_TABLE", "prometheus_agents")
LEADS_TABLE = os.environ.get("LEADS_TABLE", "leads")
ALERTS_TABLE = os.environ.get("ALERTS_TABLE", "system_alerts")
WORKFLOWS_TABLE = os.environ.get("WORKFLOWS_TABLE", "workflows")

# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------

API_PATH_PREFIX = os.environ.get("DASHBOARD_API_PATH_PREFIX", "/api").rstrip("/")
NETLIFY_FUNCTION_PREFIX = "/.netlify/functions/api"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
}

# Identity stamped on writes until real auth exists.
DEFAULT_ACTOR = os.environ.get("DASHBOARD_ACTOR", "dashboard_user")
SYSTEM_AGENT = "system"

# ---------------------------------------------------------------------------
# Business constants
# ---------------------------------------------------------------------------

DEFAULT_AGENT_VERSION = "1.0.0"
AGENT_DEGRADED_AFTER_SECONDS = 60
AGENT_OFFLINE_AFTER_SECONDS = 300

LEAD_STATUS_PENDING_RESEARCH = "PENDING_RESEARCH"
LEAD_STATUS_CONVERTED = "CONVERTED"
HOT_LEAD_SCORE = 0.8

ALERTS_LIMIT = 50

# Placeholder: not derived from agent metrics yet.
ROI_PLACEHOLDER_TASKS = 50000
ROI_HOURS_SAVED_PER_TASK = 0.083
ROI_HOURLY_RATE = 75
ROI_MONTHS_PER_YEAR = 12
ROI_AVERAGE_DEAL_VALUE = 5000
ROI_INVESTMENT_BASELINE = 50000
ROI_ASSUMED_CONVERSION_RATE = 0.15


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(logging.INFO)
