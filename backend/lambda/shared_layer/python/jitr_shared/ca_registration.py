"""jitr_shared.ca_registration — CA Registration Dealer.

Registers a CA certificate with AWS IoT (auto-registration on, active),
optionally tagged with the verifier that will judge the device certificates
it signs, and stores the full certificate bundle in the vault.

Steps:
    build_csr_subjects  registration code becomes the CSR common name
    register_ca         generate certificates, RegisterCACertificate, gate
    save_certificates   bundle -> S3, keyed by the assigned certificate id
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, TypedDict

from jitr_shared.certificates import CaRegistrationCertificates, CertificateGenerator
from jitr_shared.config import VERIFIER_TAG_KEY
from jitr_shared.dealer import Dealer
from jitr_shared.errors import InformationNotFoundError, VerifierNotFoundError
from jitr_shared.iot_platform import IotPlatform
from jitr_shared.schemas import CsrSubjects, RegistrationCodeSchema, RegistrationSchema, gate
from jitr_shared.vault import CertificateVault

logger = logging.getLogger(__name__)

REGISTRATION_INFO_MISSING = "Required registration information missing"


@dataclass(frozen=True)
class CaRegistrationWorkTable:
    csr_subjects: CsrSubjects
    verifier_name: str = ""
    certificates: Optional[CaRegistrationCertificates] = None
    certificate_id: Optional[str] = None
    certificate_arn: Optional[str] = None


class CaRegistrationCargo(TypedDict):
    certificateId: str


def extract_verifier_name(verifier_name: Optional[str], allowed: Iterable[str]) -> str:
    """Return the verifier name if it is allowed, "" if none was given."""
    if not verifier_name:
        return ""
    if verifier_name not in set(allowed):
        raise VerifierNotFoundError(f"The verifier {verifier_name!r} is not recognized")
    return verifier_name


class CaRegistrationDealer(Dealer[CaRegistrationWorkTable, CaRegistrationCargo]):
    steps = ("build_csr_subjects", "register_ca", "save_certificates")

    def __init__(
        self,
        csr_subjects: CsrSubjects,
        verifier_name: str,
        vault: CertificateVault,
        platform: Optional[IotPlatform] = None,
        generator: Optional[CertificateGenerator] = None,
    ) -> None:
        super().__init__()
        self.csr_subjects = csr_subjects
        self.verifier_name = verifier_name or ""
        self.vault = vault
        self.platform = platform or IotPlatform()
        self.generator = generator or CertificateGenerator()

    def _initial_table(self) -> CaRegistrationWorkTable:
        return CaRegistrationWorkTable(
            csr_subjects=self.csr_subjects,
            verifier_name=self.verifier_name,
        )

    def build_csr_subjects(self, table: CaRegistrationWorkTable) -> CaRegistrationWorkTable:
        code = gate(
            RegistrationCodeSchema,
            self.platform.get_registration_code(),
            InformationNotFoundError,
            context="Registration code missing",
        )
        subjects = table.csr_subjects.model_copy(update={"common_name": code.registration_code})
        return dataclasses.replace(table, csr_subjects=subjects)

    def register_ca(self, table: CaRegistrationWorkTable) -> CaRegistrationWorkTable:
        certificates = self.generator.get_ca_registration_certificates(table.csr_subjects)
        tags = [{"Key": VERIFIER_TAG_KEY, "Value": table.verifier_name}] if table.verifier_name else []

        response = self.platform.register_ca_certificate(
            ca_certificate=certificates.ca.certificate,
            verification_certificate=certificates.verification.certificate,
            tags=tags,
        )
        registration = gate(
            RegistrationSchema,
            response,
            InformationNotFoundError,
            context=REGISTRATION_INFO_MISSING,
        )
        logger.info(
            "Registered CA %s (verifier: %s)",
            registration.certificate_id,
            table.verifier_name or "none",
        )
        return dataclasses.replace(
            table,
            certificates=certificates,
            certificate_id=registration.certificate_id,
            certificate_arn=registration.certificate_arn,
        )

    def save_certificates(self, table: CaRegistrationWorkTable) -> CaRegistrationWorkTable:
        if not table.certificate_id or table.certificates is None:
            raise InformationNotFoundError(f"{REGISTRATION_INFO_MISSING}: certificateId")

        bundle = {
            **table.certificates.to_dict(),
            "certificateId": table.certificate_id,
            "certificateArn": table.certificate_arn,
        }
        self.vault.save(table.certificate_id, bundle)
        return table

    def _cargo(self, table: CaRegistrationWorkTable) -> CaRegistrationCargo:
        return {"certificateId": table.certificate_id or ""}
