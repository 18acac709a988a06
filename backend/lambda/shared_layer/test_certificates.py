"""Certificate generation tests (real key generation, no AWS)."""

from __future__ import annotations

import os
import sys
import unittest

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509.oid import NameOID

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "python"))

from jitr_shared.certificates import DEFAULT_CA_COMMON_NAME, CertificateGenerator, build_name
from jitr_shared.schemas import CsrSubjects

REGISTRATION_CODE = "a" * 64


class CertificateGeneratorTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.subjects = CsrSubjects(
            commonName=REGISTRATION_CODE,
            countryName="TW",
            organizationName="Acme",
        )
        cls.certificates = CertificateGenerator().get_ca_registration_certificates(cls.subjects)
        cls.ca = x509.load_pem_x509_certificate(cls.certificates.ca.certificate.encode())
        cls.verification = x509.load_pem_x509_certificate(
            cls.certificates.verification.certificate.encode()
        )

    def test_verification_common_name_is_registration_code(self):
        cn = self.verification.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        self.assertEqual(cn[0].value, REGISTRATION_CODE)

    def test_ca_is_self_signed_ca(self):
        self.assertEqual(self.ca.issuer, self.ca.subject)
        constraints = self.ca.extensions.get_extension_for_class(x509.BasicConstraints).value
        self.assertTrue(constraints.ca)
        cn = self.ca.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        self.assertEqual(cn[0].value, DEFAULT_CA_COMMON_NAME)

    def test_verification_signed_by_ca(self):
        self.assertEqual(self.verification.issuer, self.ca.subject)
        self.ca.public_key().verify(
            self.verification.signature,
            self.verification.tbs_certificate_bytes,
            padding.PKCS1v15(),
            hashes.SHA256(),
        )

    def test_subject_fields_carried(self):
        org = self.verification.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)
        country = self.ca.subject.get_attributes_for_oid(NameOID.COUNTRY_NAME)
        self.assertEqual(org[0].value, "Acme")
        self.assertEqual(country[0].value, "TW")

    def test_key_pairs_match_certificates(self):
        private_key = serialization.load_pem_private_key(
            self.certificates.ca.keys.private_key.encode(), password=None
        )
        self.assertEqual(
            private_key.public_key().public_numbers(),
            self.ca.public_key().public_numbers(),
        )

    def test_bundle_dict_shape(self):
        bundle = self.certificates.to_dict()
        self.assertEqual(set(bundle), {"ca", "verification"})
        self.assertEqual(set(bundle["ca"]), {"keys", "certificate"})
        self.assertEqual(set(bundle["ca"]["keys"]), {"publicKey", "privateKey"})
        self.assertTrue(bundle["verification"]["certificate"].startswith("-----BEGIN CERTIFICATE-----"))


class BuildNameTests(unittest.TestCase):
    def test_empty_fields_are_skipped(self):
        name = build_name(CsrSubjects(organizationName="Acme"))
        self.assertEqual(len(list(name)), 1)

    def test_common_name_override(self):
        name = build_name(CsrSubjects(commonName="code"), common_name="Root")
        self.assertEqual(name.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value, "Root")


if __name__ == "__main__":
    unittest.main()
