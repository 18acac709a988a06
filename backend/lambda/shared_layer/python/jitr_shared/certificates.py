"""jitr_shared.certificates — CA and verification certificate generation.

AWS IoT registers a CA only together with a verification certificate that
the CA signed and whose common name is the account's registration code. The
generator produces both, with fresh RSA key pairs, in PEM form.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from jitr_shared.schemas import CsrSubjects

logger = logging.getLogger(__name__)

DEFAULT_CA_COMMON_NAME = "JITR CA"

_SUBJECT_OIDS = (
    ("country_name", NameOID.COUNTRY_NAME),
    ("state_name", NameOID.STATE_OR_PROVINCE_NAME),
    ("locality_name", NameOID.LOCALITY_NAME),
    ("organization_name", NameOID.ORGANIZATION_NAME),
    ("organization_unit_name", NameOID.ORGANIZATIONAL_UNIT_NAME),
    ("common_name", NameOID.COMMON_NAME),
)


@dataclass(frozen=True)
class KeyPair:
    public_key: str
    private_key: str

    def to_dict(self) -> Dict[str, str]:
        return {"publicKey": self.public_key, "privateKey": self.private_key}


@dataclass(frozen=True)
class CertificateBundle:
    keys: KeyPair
    certificate: str

    def to_dict(self) -> Dict[str, Any]:
        return {"keys": self.keys.to_dict(), "certificate": self.certificate}


@dataclass(frozen=True)
class CaRegistrationCertificates:
    ca: CertificateBundle
    verification: CertificateBundle

    def to_dict(self) -> Dict[str, Any]:
        return {"ca": self.ca.to_dict(), "verification": self.verification.to_dict()}


def build_name(subjects: CsrSubjects, common_name: Optional[str] = None) -> x509.Name:
    """Build an X.509 name from CSR subjects, skipping empty fields."""
    attributes = []
    for field, oid in _SUBJECT_OIDS:
        value = getattr(subjects, field)
        if field == "common_name" and common_name is not None:
            value = common_name
        if value:
            attributes.append(x509.NameAttribute(oid, value))
    return x509.Name(attributes)


def _key_pair_pem(private_key: rsa.RSAPrivateKey) -> KeyPair:
    return KeyPair(
        public_key=private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii"),
        private_key=private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii"),
    )


def _pem(certificate: x509.Certificate) -> str:
    return certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")


class CertificateGenerator:
    def __init__(
        self,
        key_size: int = 2048,
        ca_validity_days: int = 3650,
        verification_validity_days: int = 365,
        ca_common_name: str = DEFAULT_CA_COMMON_NAME,
    ) -> None:
        self.key_size = key_size
        self.ca_validity_days = ca_validity_days
        self.verification_validity_days = verification_validity_days
        self.ca_common_name = ca_common_name

    def _new_key(self) -> rsa.RSAPrivateKey:
        return rsa.generate_private_key(public_exponent=65537, key_size=self.key_size)

    def _ca_certificate(self, key: rsa.RSAPrivateKey, subjects: CsrSubjects) -> x509.Certificate:
        name = build_name(subjects, common_name=self.ca_common_name)
        now = dt.datetime.now(dt.timezone.utc)
        return (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - dt.timedelta(minutes=5))
            .not_valid_after(now + dt.timedelta(days=self.ca_validity_days))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
            .sign(key, hashes.SHA256())
        )

    def _verification_certificate(
        self,
        key: rsa.RSAPrivateKey,
        subjects: CsrSubjects,
        ca_key: rsa.RSAPrivateKey,
        ca_certificate: x509.Certificate,
    ) -> x509.Certificate:
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(build_name(subjects))
            .sign(key, hashes.SHA256())
        )
        now = dt.datetime.now(dt.timezone.utc)
        return (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(ca_certificate.subject)
            .public_key(csr.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - dt.timedelta(minutes=5))
            .not_valid_after(now + dt.timedelta(days=self.verification_validity_days))
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()),
                critical=False,
            )
            .sign(ca_key, hashes.SHA256())
        )

    def get_ca_registration_certificates(self, subjects: CsrSubjects) -> CaRegistrationCertificates:
        """Create a CA certificate and a verification certificate it signed.

        The verification certificate carries `subjects` as-is, so its common
        name must already be the registration code.
        """
        ca_key = self._new_key()
        ca_certificate = self._ca_certificate(ca_key, subjects)

        verification_key = self._new_key()
        verification_certificate = self._verification_certificate(
            verification_key, subjects, ca_key, ca_certificate
        )
        logger.info("Generated CA certificate (serial %x)", ca_certificate.serial_number)

        return CaRegistrationCertificates(
            ca=CertificateBundle(keys=_key_pair_pem(ca_key), certificate=_pem(ca_certificate)),
            verification=CertificateBundle(
                keys=_key_pair_pem(verification_key),
                certificate=_pem(verification_certificate),
            ),
        )
