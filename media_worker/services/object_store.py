from __future__ import annotations

from pathlib import Path

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from media_worker.core.config import Settings, required


class ObjectStoreError(Exception):
    pass


def swipe_video_key(product_id: str, swipe_id: str) -> str:
    return f"products/{product_id}/swipes/{swipe_id}/source.mp4"


class ObjectStore:
    """
    Put/get-by-key over an S3-compatible bucket (Cloudflare R2 in production).
    One instance per worker process; the boto3 client is thread-safe and reused.
    """

    def __init__(self, client, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, s: Settings) -> "ObjectStore":
        client = boto3.client(
            "s3",
            region_name=s.r2_region,
            endpoint_url=s.r2_endpoint or required("R2_ENDPOINT"),
            aws_access_key_id=s.r2_access_key_id or required("R2_ACCESS_KEY_ID"),
            aws_secret_access_key=s.r2_secret_access_key or required("R2_SECRET_ACCESS_KEY"),
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
        return cls(client, s.r2_bucket or required("R2_BUCKET"))

    def upload_file(self, key: str, path: Path, content_type: str) -> None:
        try:
            with open(path, "rb") as f:
                self.client.put_object(Bucket=self.bucket, Key=key, Body=f, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(f"Object store upload failed for {key}: {e}") from e

    def download_file(self, key: str, path: Path) -> None:
        try:
            res = self.client.get_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(f"Object store download failed for {key}: {e}") from e

        body = res.get("Body")
        if body is None:
            raise ObjectStoreError("Object store download failed: empty body")

        with open(path, "wb") as f:
            for chunk in body.iter_chunks(chunk_size=1024 * 1024):
                f.write(chunk)
