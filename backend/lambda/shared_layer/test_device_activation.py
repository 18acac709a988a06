"""Device Activation Dealer tests — AWS IoT mocked, verifier doubled."""

from __future__ import annotations

import json
import os
import sys
import unittest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "python"))

from jitr_shared.ca_registration import CaRegistrationDealer
from jitr_shared.certificates import (
    CaRegistrationCertificates,
    CertificateBundle,
    CertificateGenerator,
    KeyPair,
)
from jitr_shared.dealer import State
from jitr_shared.device_activation import DeviceActivationDealer, device_policy_document
from jitr_shared.errors import InformationNotFoundError, ResourceNotFoundError, VerificationError
from jitr_shared.invoker import StaticVerifierInvoker
from jitr_shared.iot_platform import IotPlatform
from jitr_shared.schemas import CsrSubjects
from jitr_shared.vault import CertificateVault

DEVICE_ID = "dev-1"
DEVICE_ARN = "arn:aws:iot:us-west-2:123456789012:cert/dev-1"
CA_ID = "cert-1"
CA_ARN = "arn:aws:iot:us-west-2:123456789012:cacert/cert-1"

PROVISIONING_CALLS = [
    "create_thing",
    "create_policy",
    "attach_policy",
    "attach_thing_principal",
    "activate_certificate",
]


def _platform(tags=None, description=None) -> MagicMock:
    platform = MagicMock(spec=IotPlatform)
    platform.describe_certificate.return_value = (
        description
        if description is not None
        else {
            "certificateId": DEVICE_ID,
            "certificateArn": DEVICE_ARN,
            "caCertificateId": CA_ID,
            "status": "PENDING_ACTIVATION",
        }
    )
    platform.describe_ca_certificate.return_value = {"certificateId": CA_ID, "certificateArn": CA_ARN}
    platform.list_tags.return_value = [] if tags is None else tags
    platform.create_thing.return_value = {"thingName": DEVICE_ID, "thingArn": "arn:thing"}
    platform.create_policy.return_value = {"policyName": f"Policy-{DEVICE_ID}"}
    return platform


def _provisioning_calls(platform: MagicMock) -> list:
    return [c[0] for c in platform.mock_calls if c[0] in PROVISIONING_CALLS]


class DeviceActivationDealerTests(unittest.TestCase):
    def test_no_verifier_tag_skips_verification(self):
        platform = _platform(tags=[{"Key": "owner", "Value": "ops"}])
        invoker = StaticVerifierInvoker()
        dealer = DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=invoker)

        cargo = dealer.deal()

        self.assertEqual(cargo, {"certificateId": DEVICE_ID, "verifierName": ""})
        self.assertEqual(invoker.calls, [])
        self.assertEqual(_provisioning_calls(platform), PROVISIONING_CALLS)
        self.assertIs(dealer.state, State.COMPLETE)

    def test_verifier_approves(self):
        platform = _platform(tags=[{"Key": "verifierName", "Value": "checkDevice"}])
        invoker = StaticVerifierInvoker({"checkDevice": {"body": {"verified": True}}})

        cargo = DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=invoker).deal()

        self.assertEqual(cargo, {"certificateId": DEVICE_ID, "verifierName": "checkDevice"})
        name, payload = invoker.calls[0]
        self.assertEqual(name, "checkDevice")
        self.assertEqual(payload["caCertificateId"], CA_ID)
        self.assertEqual(payload["status"], "PENDING_ACTIVATION")
        self.assertEqual(_provisioning_calls(platform), PROVISIONING_CALLS)

    def test_verifier_body_as_json_text(self):
        platform = _platform(tags=[{"Key": "verifierName", "Value": "checkDevice"}])
        invoker = StaticVerifierInvoker(
            {"checkDevice": {"statusCode": 200, "body": json.dumps({"verified": True})}}
        )
        cargo = DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=invoker).deal()
        self.assertEqual(cargo["verifierName"], "checkDevice")

    def test_verifier_name_is_percent_decoded(self):
        encoded = "arn%3Aaws%3Alambda%3Aus-west-2%3A123456789012%3Afunction%3AcheckDevice"
        decoded = "arn:aws:lambda:us-west-2:123456789012:function:checkDevice"
        platform = _platform(tags=[{"Key": "verifierName", "Value": encoded}])
        invoker = StaticVerifierInvoker({decoded: {"body": {"verified": True}}})

        cargo = DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=invoker).deal()

        self.assertEqual(invoker.calls[0][0], decoded)
        self.assertEqual(cargo["verifierName"], encoded)

    def test_verifier_rejects(self):
        platform = _platform(tags=[{"Key": "verifierName", "Value": "checkDevice"}])
        invoker = StaticVerifierInvoker({"checkDevice": {"body": {"verified": False}}})
        dealer = DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=invoker)

        with self.assertRaises(VerificationError):
            dealer.deal()

        self.assertEqual(_provisioning_calls(platform), [])
        self.assertIs(dealer.state, State.INCOMPLETE)

    def test_missing_payload_fails_like_explicit_rejection(self):
        platform = _platform(tags=[{"Key": "verifierName", "Value": "checkDevice"}])
        silent = StaticVerifierInvoker({})
        rejecting = StaticVerifierInvoker({"checkDevice": {"body": {"verified": False}}})

        with self.assertRaises(VerificationError) as silent_ctx:
            DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=silent).deal()
        with self.assertRaises(VerificationError) as rejecting_ctx:
            DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=rejecting).deal()

        self.assertEqual(str(silent_ctx.exception), str(rejecting_ctx.exception))
        self.assertEqual(_provisioning_calls(platform), [])

    def test_malformed_verifier_answers_fail_closed(self):
        answers = [
            {"verified": True},  # not nested under body
            {"body": {"verified": "true"}},
            {"body": {}},
            {"body": "not json"},
            {"errorMessage": "boom", "errorType": "Exception"},
            ["verified"],
        ]
        for answer in answers:
            with self.subTest(answer=answer):
                platform = _platform(tags=[{"Key": "verifierName", "Value": "checkDevice"}])
                invoker = StaticVerifierInvoker({"checkDevice": answer})
                with self.assertRaises(VerificationError):
                    DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=invoker).deal()
                self.assertEqual(_provisioning_calls(platform), [])

    def test_invocation_failure_is_verification_error(self):
        platform = _platform(tags=[{"Key": "verifierName", "Value": "checkDevice"}])
        failure = ClientError(
            {"Error": {"Code": "ResourceNotFoundException", "Message": "Function not found"}},
            "Invoke",
        )
        invoker = StaticVerifierInvoker({"checkDevice": failure})

        with self.assertRaises(VerificationError):
            DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=invoker).deal()
        self.assertEqual(_provisioning_calls(platform), [])

    def test_undecodable_payload_is_verification_error(self):
        platform = _platform(tags=[{"Key": "verifierName", "Value": "checkDevice"}])
        invoker = StaticVerifierInvoker({"checkDevice": json.JSONDecodeError("bad", "x", 0)})
        with self.assertRaises(VerificationError):
            DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=invoker).deal()

    def test_description_without_ca_is_information_not_found(self):
        platform = _platform(description={"certificateId": DEVICE_ID, "certificateArn": DEVICE_ARN})
        with self.assertRaises(InformationNotFoundError):
            DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=StaticVerifierInvoker()).deal()
        platform.describe_ca_certificate.assert_not_called()

    def test_unknown_certificate_is_resource_not_found(self):
        platform = _platform()
        platform.describe_certificate.side_effect = ResourceNotFoundError("Certificate dev-1 not found")
        with self.assertRaises(ResourceNotFoundError) as ctx:
            DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=StaticVerifierInvoker()).deal()
        self.assertNotIsInstance(ctx.exception, InformationNotFoundError)

    def test_ca_without_arn_is_information_not_found(self):
        platform = _platform()
        platform.describe_ca_certificate.return_value = {"certificateId": CA_ID}
        with self.assertRaises(InformationNotFoundError):
            DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=StaticVerifierInvoker()).deal()
        platform.list_tags.assert_not_called()

    def test_missing_tag_list_is_information_not_found(self):
        platform = _platform()
        platform.list_tags.return_value = None
        with self.assertRaises(InformationNotFoundError):
            DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=StaticVerifierInvoker()).deal()
        self.assertEqual(_provisioning_calls(platform), [])

    def test_tags_are_read_from_ca_arn(self):
        platform = _platform()
        DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=StaticVerifierInvoker()).deal()
        platform.describe_ca_certificate.assert_called_once_with(CA_ID)
        platform.list_tags.assert_called_once_with(CA_ARN)

    def test_provisioning_arguments(self):
        platform = _platform()
        DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=StaticVerifierInvoker()).deal()

        platform.create_thing.assert_called_once_with(DEVICE_ID, {"version": "v1"})
        platform.create_policy.assert_called_once_with(f"Policy-{DEVICE_ID}", device_policy_document())
        platform.attach_policy.assert_called_once_with(f"Policy-{DEVICE_ID}", DEVICE_ARN)
        platform.attach_thing_principal.assert_called_once_with(DEVICE_ID, DEVICE_ARN)
        platform.activate_certificate.assert_called_once_with(DEVICE_ID)

    def test_policy_document_grants_connect_and_publish_only(self):
        statement = device_policy_document()["Statement"]
        self.assertEqual(len(statement), 1)
        self.assertEqual(statement[0]["Effect"], "Allow")
        self.assertEqual(statement[0]["Action"], ["iot:Connect", "iot:Publish"])
        self.assertEqual(statement[0]["Resource"], "*")

    def test_failed_attachment_leaves_partial_state(self):
        platform = _platform()
        platform.attach_policy.side_effect = ClientError(
            {"Error": {"Code": "LimitExceededException", "Message": "limit"}}, "AttachPolicy"
        )
        with self.assertRaises(ClientError):
            DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=StaticVerifierInvoker()).deal()

        self.assertEqual(_provisioning_calls(platform), ["create_thing", "create_policy", "attach_policy"])

    def test_thing_without_name_stops_provisioning(self):
        platform = _platform()
        platform.create_thing.return_value = {}
        with self.assertRaises(InformationNotFoundError):
            DeviceActivationDealer(DEVICE_ID, platform=platform, invoker=StaticVerifierInvoker()).deal()
        platform.create_policy.assert_not_called()


class RegistrationToActivationTests(unittest.TestCase):
    """The verifier tag is the only thing the two pipelines share."""

    def test_verifier_tag_round_trip(self):
        tags_by_arn = {}

        registrar = MagicMock(spec=IotPlatform)
        registrar.get_registration_code.return_value = {"registrationCode": "c" * 64}

        def register(ca_certificate, verification_certificate, tags=None):
            tags_by_arn[CA_ARN] = list(tags or [])
            return {"certificateId": CA_ID, "certificateArn": CA_ARN}

        registrar.register_ca_certificate.side_effect = register
        generator = MagicMock(spec=CertificateGenerator)
        generator.get_ca_registration_certificates.return_value = CaRegistrationCertificates(
            ca=CertificateBundle(KeyPair("p", "k"), "CA"),
            verification=CertificateBundle(KeyPair("p", "k"), "V"),
        )
        vault = MagicMock(spec=CertificateVault)

        registered = CaRegistrationDealer(
            csr_subjects=CsrSubjects(organizationName="Acme"),
            verifier_name="checkDevice",
            vault=vault,
            platform=registrar,
            generator=generator,
        ).deal()
        self.assertEqual(registered, {"certificateId": CA_ID})

        activator = _platform()
        activator.list_tags.side_effect = lambda arn: tags_by_arn[arn]
        invoker = StaticVerifierInvoker({"checkDevice": {"body": {"verified": True}}})

        activated = DeviceActivationDealer(DEVICE_ID, platform=activator, invoker=invoker).deal()

        self.assertEqual(activated, {"certificateId": DEVICE_ID, "verifierName": "checkDevice"})
        self.assertEqual(_provisioning_calls(activator), PROVISIONING_CALLS)


if __name__ == "__main__":
    unittest.main()
