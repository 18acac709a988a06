"""jitr_shared.invoker — Capability for calling a verifier by name.

`VerifierInvoker.invoke(name, payload)` returns the verifier's decoded JSON
answer, or None when the call produced no payload. A verifier that raised
is a `VerificationError`; its error payload is never read. `LambdaVerifierInvoker`
is the network implementation; `StaticVerifierInvoker` answers from a table
and is meant for tests and local runs.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

from jitr_shared.aws_clients import _get_lambda
from jitr_shared.errors import VerificationError

logger = logging.getLogger(__name__)


class VerifierInvoker(Protocol):
    def invoke(self, name: str, payload: Dict[str, Any]) -> Optional[Any]:
        ...


class LambdaVerifierInvoker:
    """Invoke a verifier as a synchronous AWS Lambda call."""

    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _get_lambda()
        return self._client

    def invoke(self, name: str, payload: Dict[str, Any]) -> Optional[Any]:
        response = self.client.invoke(
            FunctionName=name,
            InvocationType="RequestResponse",
            Payload=json.dumps(payload, default=str).encode("utf-8"),
        )
        if response.get("FunctionError"):
            logger.warning("Verifier %s raised %s", name, response["FunctionError"])
            raise VerificationError(f"Verifier {name} failed: {response['FunctionError']}")

        stream = response.get("Payload")
        if stream is None:
            return None
        payload_raw = stream.read()
        decoded = payload_raw.decode("utf-8") if isinstance(payload_raw, (bytes, bytearray)) else str(payload_raw)
        if not decoded.strip():
            return None
        return json.loads(decoded)


class StaticVerifierInvoker:
    """Answer every verifier call from a fixed name -> response table."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None) -> None:
        self.responses = dict(responses or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def invoke(self, name: str, payload: Dict[str, Any]) -> Optional[Any]:
        self.calls.append((name, payload))
        response = self.responses.get(name)
        if isinstance(response, Exception):
            raise response
        return response
