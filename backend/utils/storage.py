"""
utils/storage.py — S3-compatible object storage for uploaded documents.

Uploads never pass through the API server: the browser PUTs the file to a
presigned URL, then registers it with PUT /api/documents. Objects are
addressed inside the app as /objects/<object_id>; the owner and visibility
are stored in the object's own metadata.
"""

import logging
import uuid
from urllib.parse import urlparse, unquote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError
from flask import current_app

log = logging.getLogger(__name__)

OBJECT_PREFIX = "/objects/"
ACL_OWNER_KEY = "acl-owner"
ACL_VISIBILITY_KEY = "acl-visibility"


class ObjectNotFoundError(LookupError):
    pass


class ObjectStorageService:

    def __init__(self, client, bucket: str, private_dir: str = "uploads", url_ttl: int = 900):
        self.client = client
        self.bucket = bucket
        self.private_dir = private_dir.strip("/")
        self.url_ttl = url_ttl

    @classmethod
    def from_config(cls, config):
        """Build the service from app config, or return None if no bucket is configured."""
        bucket = config.get("OBJECT_STORAGE_BUCKET")
        if not bucket:
            log.warning("Object storage not configured — document uploads disabled.")
            return None
        client = boto3.client(
            "s3",
            endpoint_url=config.get("OBJECT_STORAGE_ENDPOINT") or None,
            aws_access_key_id=config.get("OBJECT_STORAGE_ACCESS_KEY") or None,
            aws_secret_access_key=config.get("OBJECT_STORAGE_SECRET_KEY") or None,
            region_name=config.get("OBJECT_STORAGE_REGION") or None,
            config=BotoConfig(signature_version="s3v4"),
        )
        return cls(
            client,
            bucket,
            private_dir=config.get("OBJECT_STORAGE_PRIVATE_DIR", "uploads"),
            url_ttl=config.get("UPLOAD_URL_TTL_SECONDS", 900),
        )

    # ── Upload ───────────────────────────────────────────────────────────────

    def upload_url(self) -> str:
        """Presigned PUT URL for a fresh object id under the private directory."""
        key = f"{self.private_dir}/{uuid.uuid4()}"
        return self.client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.url_ttl,
        )

    def normalize_object_path(self, raw: str) -> str:
        """
        Turn a presigned upload URL into its /objects/<id> path.
        Anything that is not a URL into our private directory is returned unchanged.
        """
        if not raw.startswith(("http://", "https://")):
            return raw
        path = unquote(urlparse(raw).path)
        marker = f"/{self.private_dir}/"
        if marker not in path:
            return raw
        object_id = path.split(marker, 1)[1]
        return f"{OBJECT_PREFIX}{object_id}"

    # ── ACL ──────────────────────────────────────────────────────────────────

    def set_acl(self, raw_path: str, owner: str, visibility: str = "private") -> str:
        """Record owner/visibility on the object and return its normalised path."""
        object_path = self.normalize_object_path(raw_path)
        if not object_path.startswith(OBJECT_PREFIX):
            return object_path

        key = self._key_for(object_path)
        head = self._head(key)
        metadata = dict(head.get("Metadata") or {})
        metadata.update({ACL_OWNER_KEY: owner, ACL_VISIBILITY_KEY: visibility})

        copy_args = {
            "Bucket": self.bucket,
            "Key": key,
            "CopySource": {"Bucket": self.bucket, "Key": key},
            "Metadata": metadata,
            "MetadataDirective": "REPLACE",
        }
        if head.get("ContentType"):
            copy_args["ContentType"] = head["ContentType"]
        self.client.copy_object(**copy_args)
        return object_path

    @staticmethod
    def can_access(head: dict, user_id: str) -> bool:
        metadata = head.get("Metadata") or {}
        if metadata.get(ACL_VISIBILITY_KEY) == "public":
            return True
        return bool(user_id) and metadata.get(ACL_OWNER_KEY) == user_id

    # ── Download ─────────────────────────────────────────────────────────────

    def head(self, object_path: str) -> dict:
        return self._head(self._key_for(object_path))

    def open(self, object_path: str) -> dict:
        """get_object response for the path; its "Body" is a streaming body."""
        key = self._key_for(object_path)
        try:
            return self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                raise ObjectNotFoundError(object_path) from e
            raise

    # ── Private helpers ──────────────────────────────────────────────────────

    def _key_for(self, object_path: str) -> str:
        if not object_path.startswith(OBJECT_PREFIX):
            raise ObjectNotFoundError(object_path)
        object_id = object_path[len(OBJECT_PREFIX):]
        if not object_id or ".." in object_id.split("/"):
            raise ObjectNotFoundError(object_path)
        return f"{self.private_dir}/{object_id}"

    def _head(self, key: str) -> dict:
        try:
            return self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                raise ObjectNotFoundError(key) from e
            raise


def _is_missing(exc: ClientError) -> bool:
    code = str(exc.response.get("Error", {}).get("Code", ""))
    return code in ("404", "NoSuchKey", "NotFound")


def get_storage() -> ObjectStorageService | None:
    return current_app.extensions.get("object_storage")
