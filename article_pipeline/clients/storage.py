import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from ..config import BROWSER_USER_AGENT
from ..errors import StorageError

logger = logging.getLogger(__name__)


def sanitize_key(key: str) -> str:
    """Keep object keys to word characters, dashes, dots and slashes."""
    sanitized = re.sub(r'[^\w\-./]', '_', key)
    sanitized = re.sub(r'_+', '_', sanitized)
    parts = [part.strip('_') for part in sanitized.split('/') if part.strip('_')]
    return '/'.join(parts)


class ObjectStorage(ABC):
    """Where generated images end up."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": BROWSER_USER_AGENT,
            "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
        })

    @abstractmethod
    def upload(self, data: bytes, content_type: str, key: str) -> str:
        """Store ``data`` under ``key`` and return its public URL."""

    def download(self, url: str) -> bytes:
        """Fetch a remote file, e.g. an image the generator only returned as a URL."""
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise StorageError(f"Failed to download {url}: {e}") from e
        return response.content


class S3Storage(ObjectStorage):
    """S3 (or S3-compatible) bucket storage."""

    def __init__(self, bucket_name: str, region: str = "us-east-1",
                 access_key_id: Optional[str] = None, secret_access_key: Optional[str] = None,
                 endpoint_url: Optional[str] = None, public_url: Optional[str] = None,
                 timeout: float = 30.0):
        super().__init__(timeout=timeout)
        if not bucket_name:
            raise StorageError("S3 bucket name is not configured")
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_url = public_url.rstrip('/') if public_url else None
        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
            endpoint_url=endpoint_url,
        )
        logger.info(f"S3 storage ready (bucket: {bucket_name})")

    def public_url_for(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    def upload(self, data: bytes, content_type: str, key: str) -> str:
        key = sanitize_key(key)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl='max-age=31536000',
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to upload {key} to S3: {e}") from e

        url = self.public_url_for(key)
        logger.info(f"Image uploaded to S3: {url}")
        return url


class LocalStorage(ObjectStorage):
    """Writes files under a local directory; used when no bucket is configured."""

    def __init__(self, root: str = "generated_images", timeout: float = 30.0):
        super().__init__(timeout=timeout)
        self.root = Path(root)

    def upload(self, data: bytes, content_type: str, key: str) -> str:
        filepath = self.root / sanitize_key(key)
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            with open(filepath, 'wb') as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Failed to save {filepath}: {e}") from e
        logger.info(f"Image saved to: {filepath}")
        return filepath.resolve().as_uri()
