"""device_activator/lambda_function.py

Activates device certificates registered under a JITR CA.

Architecture:
  AWS IoT "$aws/events/certificates/registered/<caCertificateId>" -> IoT Rule
  -> SQS -> This Lambda -> (verifier Lambda) -> AWS IoT provisioning

The first SQS record's body carries {"certificateId": "<device cert id>"}.
The verifier responsible for the device is read from the `verifierName` tag
on the parent CA certificate; a CA without that tag activates every device.

Response body: {"certificateId": "<device cert id>", "verifierName": "<name or ''>"}
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from jitr_shared.config import LOG_LEVEL
from jitr_shared.device_activation import DeviceActivationCargo, DeviceActivationDealer
from jitr_shared.handler import LimitedLambdaHandler
from jitr_shared.http_utils import _first_record_body
from jitr_shared.schemas import ActivationMessage

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(LOG_LEVEL)


def activate_device(message: ActivationMessage) -> DeviceActivationCargo:
    logger.info("device_activator: activating %s", message.certificate_id)
    dealer = DeviceActivationDealer(device_certificate_id=message.certificate_id)
    return dealer.deal()


_handler = LimitedLambdaHandler(activate_device, ActivationMessage, extract=_first_record_body)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Main Lambda entry point."""
    return _handler.http_response_handler(event, context)
