"""ca_registrator/lambda_function.py

Registers a CA certificate with AWS IoT for Just-In-Time Registration and
stores the generated certificate bundle in S3.

Invocation:
    Direct invoke or API Gateway proxy (JSON body):
    {
        "verifierName": "checkDevice",          # optional, must be allow-listed
        "csrSubjects": {
            "commonName": "",                   # replaced by the registration code
            "countryName": "TW",
            "stateName": "TP",
            "localityName": "Taipei",
            "organizationName": "Acme",
            "organizationUnitName": "devices"
        }
    }

Response body: {"certificateId": "<CA certificate id>"}

Environment variables:
    BUCKET_NAME     bucket for CA certificate bundles
    BUCKET_PREFIX   key prefix (default: "")
    VERIFIERS       JSON list of allowed verifier function names
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from jitr_shared.ca_registration import CaRegistrationCargo, CaRegistrationDealer, extract_verifier_name
from jitr_shared.config import LOG_LEVEL, load_registrator_config
from jitr_shared.handler import LimitedLambdaHandler
from jitr_shared.schemas import RegistrationEvent
from jitr_shared.vault import CertificateVault

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(LOG_LEVEL)


def register_ca(event: RegistrationEvent) -> CaRegistrationCargo:
    config = load_registrator_config()
    verifier_name = extract_verifier_name(event.verifier_name, config.verifiers)

    logger.info(
        "ca_registrator: registering CA for %s (verifier: %s)",
        event.csr_subjects.organization_name or "unnamed organization",
        verifier_name or "none",
    )
    dealer = CaRegistrationDealer(
        csr_subjects=event.csr_subjects,
        verifier_name=verifier_name,
        vault=CertificateVault(config.bucket_name, config.bucket_prefix),
    )
    return dealer.deal()


_handler = LimitedLambdaHandler(register_ca, RegistrationEvent)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Main Lambda entry point."""
    return _handler.http_response_handler(event, context)
