"""Pre-signed upload URLs for the document bucket (any S3-compatible store)."""
import logging

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

import config
from errors import StorageError

logger = logging.getLogger(__name__)

_client = None


def get_client():
    global _client
    if _client is None:
        if not (config.STORAGE_ENDPOINT and config.STORAGE_BUCKET):
            raise StorageError("Object storage is not configured")
        _client = boto3.client(
            "s3",
            region_name="auto",
            endpoint_url=config.STORAGE_ENDPOINT,
            aws_access_key_id=config.STORAGE_ACCESS_KEY_ID,
            aws_secret_access_key=config.STORAGE_SECRET_ACCESS_KEY,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
    return _client


def reset_client():
    global _client
    _client = None


def document_key(document_type: str, user_id: str, file_uuid: str, filetype: str) -> str:
    ext = filetype.split("/")[-1]
    return f"{document_type}/{user_id}_{file_uuid}.{ext}"


def public_url(key: str) -> str:
    return f"{config.STORAGE_PUBLIC_ENDPOINT}/{config.STORAGE_BUCKET}/{key}"


def presigned_upload_url(key: str, content_type: str) -> str:
    try:
        return get_client().generate_presigned_url(
            "put_object",
            Params={"Bucket": config.STORAGE_BUCKET, "Key": key, "ContentType": content_type},
            ExpiresIn=config.UPLOAD_URL_EXPIRY_SECONDS,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error("could not presign upload for %s: %s", key, e)
        raise StorageError(str(e)) from e
