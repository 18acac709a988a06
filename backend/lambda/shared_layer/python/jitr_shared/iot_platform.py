"""jitr_shared.iot_platform — Thin adapter over the AWS IoT control-plane calls.

Responses are returned as plain dicts; validating them is the caller's job
(see `jitr_shared.schemas.gate`). A missing certificate is reported as
`ResourceNotFoundError`; every other botocore failure propagates unchanged.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from jitr_shared.aws_clients import _get_iot
from jitr_shared.errors import ResourceNotFoundError

logger = logging.getLogger(__name__)


def _is_not_found(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == "ResourceNotFoundException"


class IotPlatform:
    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _get_iot()
        return self._client

    # -- CA registration ---------------------------------------------------

    def get_registration_code(self) -> Dict[str, Any]:
        return self.client.get_registration_code()

    def register_ca_certificate(
        self,
        ca_certificate: str,
        verification_certificate: str,
        tags: Optional[List[Dict[str, str]]] = None,
    ) -> Dict[str, Any]:
        return self.client.register_ca_certificate(
            caCertificate=ca_certificate,
            verificationCertificate=verification_certificate,
            setAsActive=True,
            allowAutoRegistration=True,
            registrationConfig={},
            tags=tags or [],
        )

    # -- Lookups -----------------------------------------------------------

    def describe_certificate(self, certificate_id: str) -> Dict[str, Any]:
        try:
            response = self.client.describe_certificate(certificateId=certificate_id)
        except ClientError as exc:
            if _is_not_found(exc):
                raise ResourceNotFoundError(f"Certificate {certificate_id} not found") from exc
            raise
        return response.get("certificateDescription") or {}

    def describe_ca_certificate(self, certificate_id: str) -> Dict[str, Any]:
        try:
            response = self.client.describe_ca_certificate(certificateId=certificate_id)
        except ClientError as exc:
            if _is_not_found(exc):
                raise ResourceNotFoundError(f"CA certificate {certificate_id} not found") from exc
            raise
        return response.get("certificateDescription") or {}

    def list_tags(self, resource_arn: str) -> Optional[List[Dict[str, Any]]]:
        """Return every tag on `resource_arn`, or None if IoT sent no tag list."""
        response = self.client.list_tags_for_resource(resourceArn=resource_arn)
        tags = response.get("tags")
        if tags is None:
            return None

        tags = list(tags)
        next_token = response.get("nextToken")
        while next_token:
            response = self.client.list_tags_for_resource(
                resourceArn=resource_arn, nextToken=next_token
            )
            tags.extend(response.get("tags") or [])
            next_token = response.get("nextToken")
        return tags

    # -- Provisioning ------------------------------------------------------

    def create_thing(self, thing_name: str, attributes: Dict[str, str]) -> Dict[str, Any]:
        return self.client.create_thing(
            thingName=thing_name,
            attributePayload={"attributes": attributes},
        )

    def create_policy(self, policy_name: str, policy_document: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.create_policy(
            policyName=policy_name,
            policyDocument=json.dumps(policy_document),
        )

    def attach_policy(self, policy_name: str, target: str) -> None:
        self.client.attach_policy(policyName=policy_name, target=target)

    def attach_thing_principal(self, thing_name: str, principal: str) -> None:
        self.client.attach_thing_principal(thingName=thing_name, principal=principal)

    def activate_certificate(self, certificate_id: str) -> None:
        self.client.update_certificate(certificateId=certificate_id, newStatus="ACTIVE")
