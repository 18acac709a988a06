"""jitr_shared.vault — S3-backed store for CA certificate bundles.

One JSON object per CA at `<prefix>/<certificateId>/ca-certificate.json`.
"""

from __future__ import annotations

import json
import logging
import posixpath
from typing import Any, Dict

from botocore.exceptions import ClientError

from jitr_shared.aws_clients import _get_s3
from jitr_shared.config import BUNDLE_FILENAME
from jitr_shared.errors import ResourceNotFoundError

logger = logging.getLogger(__name__)


class CertificateVault:
    def __init__(self, bucket_name: str, prefix: str = "", client: Any = None) -> None:
        self.bucket_name = bucket_name
        self.prefix = prefix or ""
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _get_s3()
        return self._client

    def key_for(self, certificate_id: str) -> str:
        return posixpath.join(self.prefix, certificate_id, BUNDLE_FILENAME)

    def save(self, certificate_id: str, bundle: Dict[str, Any]) -> str:
        key = self.key_for(certificate_id)
        self.client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=json.dumps(bundle).encode("utf-8"),
            ContentType="application/json",
        )
        logger.info("Stored certificate bundle s3://%s/%s", self.bucket_name, key)
        return key

    def load(self, certificate_id: str) -> Dict[str, Any]:
        key = self.key_for(certificate_id)
        try:
            resp = self.client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if e.response["Error"]["Code"] == "NoSuchKey":
                raise ResourceNotFoundError(f"No bundle stored for {certificate_id}") from e
            raise
        return json.loads(resp["Body"].read().decode("utf-8"))
