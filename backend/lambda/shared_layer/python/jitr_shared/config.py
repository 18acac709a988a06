"""jitr_shared.config — Environment-derived configuration for the JITR Lambdas.

Environment variables:
    BUCKET_NAME     S3 bucket receiving CA certificate bundles
    BUCKET_PREFIX   key prefix for bundles (default: "")
    VERIFIERS       JSON-encoded allow-list of verifier function names
    AWS_REGION      region for boto3 clients (boto3 default when unset)
    LOG_LEVEL       root logger level (default: INFO)

The registrator configuration is read on every invocation through
`load_registrator_config()` rather than frozen at import time.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

AWS_REGION: Optional[str] = os.environ.get("AWS_REGION") or None
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()

VERIFIER_TAG_KEY = "verifierName"
BUNDLE_FILENAME = "ca-certificate.json"


@dataclass(frozen=True)
class RegistratorConfig:
    bucket_name: str
    bucket_prefix: str
    verifiers: Tuple[str, ...]


def _normalize_names(values: Any) -> Tuple[str, ...]:
    """Return deduplicated, non-empty names preserving order."""
    names: list[str] = []
    seen: set[str] = set()
    for value in values:
        if not isinstance(value, str):
            continue
        name = value.strip()
        if not name or name in seen:
            continue
        seen.add(name)
        names.append(name)
    return tuple(names)


def parse_verifiers(raw: Optional[str]) -> Tuple[str, ...]:
    """Parse the VERIFIERS allow-list.

    Accepts a JSON list, a JSON string wrapping a JSON list (an empty list is
    sometimes double-encoded as ``"[]"`` by deployment tooling), or a
    comma/semicolon/whitespace separated list of names.
    """
    if raw is None:
        return ()
    text = raw.strip()
    if not text:
        return ()

    try:
        loaded = json.loads(text)
    except ValueError:
        return _normalize_names(p for p in re.split(r"[\s,;]+", text) if p)

    if isinstance(loaded, str):
        return parse_verifiers(loaded) if loaded.strip() != text else ()
    if isinstance(loaded, list):
        return _normalize_names(loaded)

    logger.warning("VERIFIERS is not a list (%s); treating as empty", type(loaded).__name__)
    return ()


def load_registrator_config(environ: Optional[Mapping[str, str]] = None) -> RegistratorConfig:
    env = os.environ if environ is None else environ
    return RegistratorConfig(
        bucket_name=env.get("BUCKET_NAME", ""),
        bucket_prefix=env.get("BUCKET_PREFIX", "") or "",
        verifiers=parse_verifiers(env.get("VERIFIERS")),
    )
