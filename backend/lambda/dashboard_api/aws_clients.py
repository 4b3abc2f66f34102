"""aws_clients.py — Singleton DynamoDB client and document store.

The client is created on first use and cached for warm invocations; it holds
no request data. Retries are disabled so a store failure surfaces on the
first attempt.

Part of the Prometheus dashboard API Lambda.
"""
from __future__ import annotations

from typing import Any, Dict

import boto3
from botocore.config import Config

from config import DYNAMODB_REGION, STORE_CLIENT_ID, STORE_PRIVATE_KEY, STORE_PROJECT_ID, logger
from store import DynamoDocumentStore

__all__ = [
    "_ddb",
    "_get_ddb",
    "_get_store",
    "_store",
]

# ---------------------------------------------------------------------------
# AWS client singletons
# ---------------------------------------------------------------------------

_ddb = None
_store = None


def _credential_kwargs() -> Dict[str, Any]:
    if not (STORE_CLIENT_ID and STORE_PRIVATE_KEY):
        return {}
    return {
        "aws_access_key_id": STORE_CLIENT_ID,
        "aws_secret_access_key": STORE_PRIVATE_KEY,
    }


def _get_ddb():
    global _ddb
    if _ddb is None:
        creds = _credential_kwargs()
        logger.info(
            "[INFO] creating DynamoDB client region=%s credentials=%s",
            DYNAMODB_REGION,
            "explicit" if creds else "default-chain",
        )
        _ddb = boto3.client(
            "dynamodb",
            region_name=DYNAMODB_REGION,
            config=Config(retries={"max_attempts": 1, "mode": "standard"}),
            **creds,
        )
    return _ddb


def _get_store() -> DynamoDocumentStore:
    global _store
    if _store is None:
        _store = DynamoDocumentStore(_get_ddb(), table_prefix=STORE_PROJECT_ID)
    return _store
