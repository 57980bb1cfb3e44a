import base64
import binascii
import logging
import re
import uuid
from datetime import datetime, timezone
from io import BytesIO
from typing import Optional, Protocol, Tuple

import boto3
from PIL import Image, UnidentifiedImageError

from ..config import (
    AWS_ACCESS_KEY,
    AWS_SECRET_KEY,
    S3_BUCKET_NAME,
    S3_ENDPOINT_URL,
    S3_PATH_PREFIX,
    S3_PUBLIC_URL,
    S3_REGION,
)
from ..errors import ImageStoreError, ValidationError

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:image/(\w+);base64,(.+)$", re.DOTALL)

# Pillow format name -> file extension
ALLOWED_FORMATS = {
    "PNG": "png",
    "JPEG": "jpg",
    "WEBP": "webp",
    "GIF": "gif",
}


class ImageStore(Protocol):
    def upload(self, data: bytes, content_type: str) -> str: ...

    def delete(self, key: str) -> bool: ...

    def url_for(self, key: str) -> str: ...


def parse_data_url(image_data: str) -> Tuple[bytes, str]:
    """Split a ``data:image/<fmt>;base64,...`` URL into bytes and content type."""
    matches = DATA_URL_PATTERN.match(image_data or "")
    if not matches:
        raise ValidationError("Invalid image data format")
    image_format, payload = matches.groups()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image data is not valid base64")
    if not data:
        raise ValidationError("Image data is empty")
    return data, f"image/{image_format.lower()}"


def inspect_image(data: bytes) -> str:
    """Return the file extension for ``data``, rejecting anything Pillow
    cannot identify as one of the allowed formats."""
    try:
        with Image.open(BytesIO(data)) as image:
            image.verify()
            image_format = image.format
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError("File must be an image")
    if image_format not in ALLOWED_FORMATS:
        raise ValidationError(f"Unsupported image format: {image_format}")
    return ALLOWED_FORMATS[image_format]


def generate_key(extension: str, now: Optional[datetime] = None, prefix: str = S3_PATH_PREFIX) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{prefix}/{now:%Y-%m}/{uuid.uuid4()}.{extension}"


class S3ImageStore:
    def __init__(self, client=None, bucket: str = S3_BUCKET_NAME, public_url: str = S3_PUBLIC_URL):
        self.client = client or boto3.client(
            "s3",
            aws_access_key_id=AWS_ACCESS_KEY,
            aws_secret_access_key=AWS_SECRET_KEY,
            region_name=S3_REGION,
            endpoint_url=S3_ENDPOINT_URL,
        )
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")

    def url_for(self, key: str) -> str:
        return f"{self.public_url}/{key}"

    def upload(self, data: bytes, content_type: str) -> str:
        extension = inspect_image(data)
        key = generate_key(extension)
        try:
            self.client.upload_fileobj(
                BytesIO(data),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except Exception as e:
            logger.error("Failed to upload image %s: %s", key, e)
            raise ImageStoreError(f"Failed to upload image: {e}")
        return key

    def delete(self, key: str) -> bool:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
            return True
        except Exception as e:
            logger.warning("Failed to delete image %s: %s", key, e)
            return False


_image_store: Optional[S3ImageStore] = None

def get_image_store() -> ImageStore:
    global _image_store
    if _image_store is None:
        _image_store = S3ImageStore()
    return _image_store
