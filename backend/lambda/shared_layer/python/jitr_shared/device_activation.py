"""jitr_shared.device_activation — Device Activation Dealer.

Triggered once per "certificate registered" notification. Recovers the
verifier tagged on the device certificate's CA at registration time, asks
that verifier to judge the certificate when there is one, and provisions
the device only after verification passed or was skipped.

Steps:
    get_device_certificate_information  DescribeCertificate + gate
    get_verifier_name                   DescribeCACertificate, ListTagsForResource
    verify                              invoke the verifier; fails closed
    provision                           thing, policy, attachments, ACTIVE
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TypedDict
from urllib.parse import unquote

from botocore.exceptions import BotoCoreError, ClientError

from jitr_shared.config import VERIFIER_TAG_KEY
from jitr_shared.dealer import Dealer
from jitr_shared.errors import InformationNotFoundError, VerificationError
from jitr_shared.invoker import LambdaVerifierInvoker, VerifierInvoker
from jitr_shared.iot_platform import IotPlatform
from jitr_shared.schemas import (
    CaCertificateDescriptionSchema,
    DeviceCertificateDescriptionSchema,
    PolicySchema,
    TagListSchema,
    ThingSchema,
    VerificationSchema,
    gate,
)

logger = logging.getLogger(__name__)

THING_SCHEMA_VERSION = "v1"
# Stands in for a verifier call that returned nothing.
DEFAULT_VERIFICATION_PAYLOAD: Dict[str, Any] = {"body": {"verified": False}}


def device_policy_document() -> Dict[str, Any]:
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Action": ["iot:Connect", "iot:Publish"],
                "Resource": "*",
            }
        ],
    }


def policy_name_for(device_certificate_id: str) -> str:
    return f"Policy-{device_certificate_id}"


@dataclass(frozen=True)
class DeviceActivationWorkTable:
    device_certificate_id: str
    device_certificate_arn: Optional[str] = None
    ca_certificate_id: Optional[str] = None
    device_certificate_description: Dict[str, Any] = field(default_factory=dict)
    verifier_name: str = ""


class DeviceActivationCargo(TypedDict):
    certificateId: str
    verifierName: str


def _verification_body(payload: Any) -> Any:
    """Pull `body` out of a verifier answer; API-style answers carry it as JSON text."""
    body = payload.get("body") if isinstance(payload, dict) else None
    if isinstance(body, (str, bytes, bytearray)):
        try:
            return json.loads(body)
        except ValueError as exc:
            raise VerificationError(f"Verifier body is not valid JSON: {exc}") from exc
    return body


class DeviceActivationDealer(Dealer[DeviceActivationWorkTable, DeviceActivationCargo]):
    steps = (
        "get_device_certificate_information",
        "get_verifier_name",
        "verify",
        "provision",
    )

    def __init__(
        self,
        device_certificate_id: str,
        platform: Optional[IotPlatform] = None,
        invoker: Optional[VerifierInvoker] = None,
    ) -> None:
        super().__init__()
        self.device_certificate_id = device_certificate_id
        self.platform = platform or IotPlatform()
        self.invoker = invoker or LambdaVerifierInvoker()

    def _initial_table(self) -> DeviceActivationWorkTable:
        return DeviceActivationWorkTable(device_certificate_id=self.device_certificate_id)

    def get_device_certificate_information(
        self, table: DeviceActivationWorkTable
    ) -> DeviceActivationWorkTable:
        description = self.platform.describe_certificate(table.device_certificate_id)
        checked = gate(
            DeviceCertificateDescriptionSchema,
            description,
            InformationNotFoundError,
            context="Device certificate information missing",
        )
        return dataclasses.replace(
            table,
            ca_certificate_id=checked.ca_certificate_id,
            device_certificate_arn=checked.certificate_arn,
            device_certificate_description=description,
        )

    def get_verifier_name(self, table: DeviceActivationWorkTable) -> DeviceActivationWorkTable:
        ca_description = gate(
            CaCertificateDescriptionSchema,
            self.platform.describe_ca_certificate(table.ca_certificate_id),
            InformationNotFoundError,
            context="CA certificate information missing",
        )
        tags = gate(
            TagListSchema,
            self.platform.list_tags(ca_description.certificate_arn),
            InformationNotFoundError,
            context="CA certificate tags missing",
        )
        verifier_name = next(
            (tag.value or "" for tag in tags if tag.key == VERIFIER_TAG_KEY),
            "",
        )
        return dataclasses.replace(table, verifier_name=verifier_name)

    def verify(self, table: DeviceActivationWorkTable) -> DeviceActivationWorkTable:
        if not table.verifier_name:
            logger.info("No verifier for %s; skipping verification", table.device_certificate_id)
            return table

        function_name = unquote(table.verifier_name)
        try:
            payload = self.invoker.invoke(function_name, table.device_certificate_description)
        except (ClientError, BotoCoreError, ValueError) as exc:
            raise VerificationError(f"Verifier {function_name} could not be invoked: {exc}") from exc

        if payload is None:
            payload = DEFAULT_VERIFICATION_PAYLOAD

        gate(
            VerificationSchema,
            _verification_body(payload),
            VerificationError,
            context=f"Verifier {function_name} rejected {table.device_certificate_id}",
        )
        logger.info("Verifier %s approved %s", function_name, table.device_certificate_id)
        return table

    def provision(self, table: DeviceActivationWorkTable) -> DeviceActivationWorkTable:
        certificate_id = table.device_certificate_id
        certificate_arn = table.device_certificate_arn

        thing = gate(
            ThingSchema,
            self.platform.create_thing(certificate_id, {"version": THING_SCHEMA_VERSION}),
            InformationNotFoundError,
            context="Thing information missing",
        )
        policy = gate(
            PolicySchema,
            self.platform.create_policy(policy_name_for(certificate_id), device_policy_document()),
            InformationNotFoundError,
            context="Policy information missing",
        )
        self.platform.attach_policy(policy.policy_name, certificate_arn)
        self.platform.attach_thing_principal(thing.thing_name, certificate_arn)
        self.platform.activate_certificate(certificate_id)

        logger.info("Provisioned thing %s for %s", thing.thing_name, certificate_id)
        return table

    def _cargo(self, table: DeviceActivationWorkTable) -> DeviceActivationCargo:
        return {
            "certificateId": table.device_certificate_id,
            "verifierName": table.verifier_name,
        }
