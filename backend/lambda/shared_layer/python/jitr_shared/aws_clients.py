"""jitr_shared.aws_clients — Lazy-singleton AWS service clients.

Provides factory functions that create boto3 clients on first call and
cache them for subsequent invocations in the same Lambda container. Clients
are transport only; no pipeline state is cached here.
"""

from __future__ import annotations

from typing import Optional

import boto3
from botocore.config import Config

from jitr_shared.config import AWS_REGION

# ---------------------------------------------------------------------------
# Client singletons
# ---------------------------------------------------------------------------

_iot = None
_s3 = None
_lambda = None


def _get_iot(region: Optional[str] = None):
    """Get (or create) the IoT client singleton."""
    global _iot
    if _iot is None:
        _iot = boto3.client(
            "iot",
            region_name=region or AWS_REGION,
            config=Config(retries={"max_attempts": 5, "mode": "standard"}),
        )
    return _iot


def _get_s3(region: Optional[str] = None):
    """Get (or create) the S3 client singleton."""
    global _s3
    if _s3 is None:
        _s3 = boto3.client(
            "s3",
            region_name=region or AWS_REGION,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
    return _s3


def _get_lambda(region: Optional[str] = None):
    """Get (or create) the Lambda client singleton."""
    global _lambda
    if _lambda is None:
        _lambda = boto3.client(
            "lambda",
            region_name=region or AWS_REGION,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
    return _lambda
