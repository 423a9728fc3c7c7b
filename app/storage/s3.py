import logging
from typing import List

import boto3
from botocore.exceptions import ClientError

from app.storage.interface import BundleStorage

logger = logging.getLogger(__name__)

BUNDLE_PREFIX = "bundles/"
BUNDLE_SUFFIX = ".journey.json"


class S3Storage(BundleStorage):
    """
    Implements bundle storage using AWS S3.
    """

    def __init__(self, bucket_name: str, aws_access_key_id: str = None,
                 aws_secret_access_key: str = None, region_name: str = None, s3_client=None):
        """
        Initialize S3 storage.

        Args:
            bucket_name: S3 bucket name
            aws_access_key_id: AWS access key ID (if None, uses environment variables)
            aws_secret_access_key: AWS secret access key (if None, uses environment variables)
            region_name: AWS region name (if None, uses environment variables)
            s3_client: Pre-built client, mainly for tests
        """
        self.bucket_name = bucket_name

        # If credentials are not provided, boto3 will look for them in environment variables
        self.s3_client = s3_client or boto3.client(
            's3',
            aws_access_key_id=aws_access_key_id or None,
            aws_secret_access_key=aws_secret_access_key or None,
            region_name=region_name
        )

        self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        """Ensure the S3 bucket exists, create it if it doesn't."""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code == '404':
                self.s3_client.create_bucket(Bucket=self.bucket_name)
            else:
                raise

    @staticmethod
    def _key(name: str) -> str:
        return f"{BUNDLE_PREFIX}{name}{BUNDLE_SUFFIX}"

    def save_bundle(self, bundle_data: bytes, name: str) -> str:
        s3_key = self._key(name)
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=s3_key,
            Body=bundle_data,
            ContentType="application/json",
        )
        return f"s3://{self.bucket_name}/{s3_key}"

    def get_bundle(self, name: str) -> bytes:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=self._key(name))
            return response['Body'].read()
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'NoSuchKey':
                raise FileNotFoundError(f"Bundle not found: {name}")
            raise

    def delete_bundle(self, name: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=self._key(name))
            return True
        except ClientError as e:
            logger.error(f"Failed to delete bundle {name}: {e}")
            return False

    def list_bundles(self) -> List[str]:
        names = []
        paginator = self.s3_client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=BUNDLE_PREFIX):
            for item in page.get('Contents', []):
                key = item['Key']
                if key.endswith(BUNDLE_SUFFIX):
                    names.append(key[len(BUNDLE_PREFIX):-len(BUNDLE_SUFFIX)])
        return sorted(names)
