"""
S3 Service

Per-user object storage against any S3-compatible endpoint (AWS, MinIO,
Wasabi, ...). A user without object storage enabled gets ``None`` from
``get_storage_config`` and callers fall back to local storage.
"""
import io
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import unquote, urlparse

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from config.logging_config import LogCategory, get_smart_logger
from utils.errors import NotFound, StorageError

logger = get_smart_logger(__name__, LogCategory.STORAGE)

_UNSAFE_CHARS = re.compile(r'[^a-zA-Z0-9.-]')
_MISSING_CODES = {'NoSuchKey', 'NotFound', '404'}

ProgressCallback = Callable[[int, int], None]


@dataclass
class ObjectStorageConfig:
    endpoint: str
    region: str
    bucket: str
    access_key: str
    secret_key: str

    @property
    def base_url(self) -> str:
        endpoint = self.endpoint or f'https://s3.{self.region or "us-east-1"}.amazonaws.com'
        return endpoint.rstrip('/')


def get_storage_config(user) -> Optional[ObjectStorageConfig]:
    if user is None or not user.s3_enabled:
        return None
    return ObjectStorageConfig(
        endpoint=user.s3_endpoint or '',
        region=user.s3_region or '',
        bucket=user.s3_bucket or '',
        access_key=user.s3_access_key or '',
        secret_key=user.s3_secret_key or '',
    )


def build_object_key(filename: str, now_ms: Optional[int] = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f'files/{stamp}-{_UNSAFE_CHARS.sub("_", filename or "file")}'


def extract_key(file_path: str, config: ObjectStorageConfig) -> str:
    """Recover the object key from a URL returned by ``upload``.

    Well-formed URLs are parsed and the bucket segment dropped. Legacy
    path-only values (``/bucket/files/..`` or ``host/bucket/files/..``) fall
    back to segment splitting.
    """
    if not file_path:
        return ''

    prefix = f'{config.base_url}/{config.bucket}/'
    if file_path.startswith(prefix):
        return unquote(file_path[len(prefix):])

    parsed = urlparse(file_path)
    if parsed.scheme and parsed.netloc:
        segments = parsed.path.split('/')[1:]
        if config.bucket in segments:
            segments = segments[segments.index(config.bucket) + 1:]
        else:
            segments = segments[1:]
        key = '/'.join(segments)
        logger.debug(f"Extracted key from path {parsed.path}: {key}")
        return unquote(key)

    segments = [segment for segment in file_path.split('/') if segment]
    if config.bucket in segments:
        segments = segments[segments.index(config.bucket) + 1:]
    key = '/'.join(segments)
    logger.debug(f"Fallback key extraction: {key}")
    return unquote(key)


def _aws_client(config: ObjectStorageConfig):
    return boto3.client(
        's3',
        endpoint_url=config.endpoint or None,
        region_name=config.region or None,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
        # Path-style addressing is required by most S3-compatible providers
        config=Config(s3={'addressing_style': 'path'}),
    )


class _ProgressTracker:
    """Turns boto3's per-chunk byte increments into cumulative progress."""

    def __init__(self, total: int, callback: ProgressCallback):
        self.total = total
        self.sent = 0
        self.callback = callback

    def __call__(self, bytes_amount: int):
        self.sent += bytes_amount
        self.callback(self.sent, self.total)


class ObjectStorageAdapter:
    def __init__(self, config: ObjectStorageConfig, client=None):
        self.config = config
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _aws_client(self.config)
        return self._client

    def object_url(self, key: str) -> str:
        return f'{self.config.base_url}/{self.config.bucket}/{key}'

    def upload(self, data: bytes, filename: str, content_type: str = 'application/octet-stream',
               progress: Optional[ProgressCallback] = None) -> str:
        key = build_object_key(filename)
        kwargs = {'ExtraArgs': {'ContentType': content_type or 'application/octet-stream'}}
        if progress is not None:
            kwargs['Callback'] = _ProgressTracker(len(data), progress)
        try:
            self.client.upload_fileobj(io.BytesIO(data), self.config.bucket, key, **kwargs)
        except (BotoCoreError, ClientError, S3UploadFailedError) as exc:
            logger.error(f"Error uploading file to S3: {exc}", context={'bucket': self.config.bucket, 'key': key})
            raise StorageError('Failed to upload file to S3') from exc

        logger.info(f"Uploaded {len(data)} bytes to {self.config.bucket}/{key}")
        return self.object_url(key)

    def fetch(self, file_path: str) -> bytes:
        key = extract_key(file_path, self.config)
        if not key:
            logger.error(f"Failed to extract a valid key from file path: {file_path}")
            raise StorageError('Invalid file path')

        try:
            response = self.client.get_object(Bucket=self.config.bucket, Key=key)
            body = response['Body'].read()
        except ClientError as exc:
            code = str(exc.response.get('Error', {}).get('Code', ''))
            if code in _MISSING_CODES:
                raise NotFound('File not found in object storage') from exc
            logger.error(f"Error retrieving file from S3: {exc}", context={'key': key})
            raise StorageError('Failed to retrieve file from S3') from exc
        except BotoCoreError as exc:
            logger.error(f"Error retrieving file from S3: {exc}", context={'key': key})
            raise StorageError('Failed to retrieve file from S3') from exc

        logger.debug(f"Retrieved {key}, size: {len(body)} bytes")
        return body

    def delete(self, file_path: str) -> bool:
        key = extract_key(file_path, self.config)
        if not key:
            logger.error(f"Failed to extract a valid key from file path: {file_path}")
            return False
        try:
            self.client.delete_object(Bucket=self.config.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.error(f"Error deleting file from S3: {exc}", context={'key': key})
            return False
        logger.info(f"Deleted file from S3: {key}")
        return True

    def owns(self, file_path: Optional[str]) -> bool:
        """True when ``file_path`` points into this adapter's bucket."""
        return bool(file_path) and file_path.startswith(f'{self.config.base_url}/{self.config.bucket}/')

    def test_connection(self) -> bool:
        try:
            self.client.head_bucket(Bucket=self.config.bucket)
        except (BotoCoreError, ClientError) as exc:
            logger.error(f"S3 connection test failed: {exc}", context={'bucket': self.config.bucket})
            return False
        return True
