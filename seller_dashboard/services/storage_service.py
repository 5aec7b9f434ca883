"""S3-compatible object storage for product images."""
import logging

import boto3
from botocore.config import Config as BotoConfig

logger = logging.getLogger(__name__)


class StorageClient:
    """Thin wrapper around one bucket.

    Built once at startup and handed to the services that need it, so
    tests can swap in a fake with the same ``upload``/``remove`` surface.
    The boto3 client is thread-safe, which the upload fan-out relies on.
    """

    def __init__(self, client, bucket, public_url):
        self.client = client
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")

    @classmethod
    def from_config(cls, config):
        client = boto3.client(
            "s3",
            endpoint_url=config.get("S3_ENDPOINT_URL") or None,
            aws_access_key_id=config.get("S3_ACCESS_KEY") or None,
            aws_secret_access_key=config.get("S3_SECRET_KEY") or None,
            region_name=config.get("S3_REGION") or None,
            config=BotoConfig(signature_version="s3v4"),
        )
        return cls(client, config["S3_BUCKET_NAME"], config.get("S3_PUBLIC_URL", ""))

    def get_public_url(self, storage_key):
        """Return the public CDN URL for a storage key."""
        return f"{self.public_url}/{storage_key}"

    def key_from_url(self, url):
        """Inverse of get_public_url. Returns None for foreign URLs."""
        prefix = self.public_url + "/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix):] or None

    def upload(self, storage_key, data, content_type="image/jpeg"):
        """Upload bytes as a public object and return its URL."""
        self.client.put_object(
            Bucket=self.bucket,
            Key=storage_key,
            Body=data,
            ContentType=content_type,
            ACL="public-read",
        )
        return self.get_public_url(storage_key)

    def remove(self, storage_keys):
        """Delete many objects in one call.

        Raises RuntimeError when the bucket reports any per-key error.
        """
        if not storage_keys:
            return
        objects = [{"Key": k} for k in storage_keys]
        response = self.client.delete_objects(
            Bucket=self.bucket,
            Delete={"Objects": objects, "Quiet": True},
        )
        errors = response.get("Errors") or []
        if errors:
            keys = ", ".join(e.get("Key", "?") for e in errors)
            raise RuntimeError(f"Storage refused to delete: {keys}")

    def remove_urls(self, urls):
        """Delete objects by public URL, ignoring URLs outside this bucket."""
        keys = []
        for url in urls:
            key = self.key_from_url(url)
            if key:
                keys.append(key)
            else:
                logger.warning("Skipping non-bucket image URL: %s", url)
        self.remove(keys)
        return keys
