"""jitr_shared.handler — Boundary wrapper shared by the JITR Lambda functions.

`LimitedLambdaHandler` ties a workflow (validated event -> cargo) to a Lambda
entry point. `handle()` raises; `http_response_handler()` turns the result or
the classified error into a JSON response.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Type

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from jitr_shared.errors import InputError, JitrError, ProcessingError
from jitr_shared.http_utils import _error, _request_payload, _response
from jitr_shared.schemas import gate

logger = logging.getLogger(__name__)


class LimitedLambdaHandler:
    def __init__(
        self,
        workflow: Callable[[Any], Any],
        schema: Optional[Type[BaseModel]] = None,
        extract: Callable[[Any], Dict[str, Any]] = _request_payload,
    ) -> None:
        self.workflow = workflow
        self.schema = schema
        self.extract = extract

    def cast(self, payload: Any) -> Any:
        if self.schema is None:
            return payload
        return gate(self.schema, payload, InputError, context="Invalid event")

    def handle(self, payload: Any) -> Any:
        return self.workflow(self.cast(payload))

    def http_response_handler(self, event: Any, context: Any = None) -> Dict[str, Any]:
        try:
            result = self.handle(self.extract(event))
        except JitrError as exc:
            logger.warning("%s (%d): %s", exc.kind, exc.code, exc)
            return _error(exc.code, exc.message, exc.kind)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"AWS error: {e}", exc_info=True)
            return _error(500, "AWS service call failed", ProcessingError.__name__)
        except Exception as e:
            logger.error(f"Unexpected error: {e}", exc_info=True)
            return _error(500, "Internal service error", ProcessingError.__name__)
        return _response(200, result)
