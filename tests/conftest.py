from __future__ import annotations

import boto3
import pytest

from s3_cleaner.cleaner import S3BucketCleaner
from s3_cleaner.config import ConnectionSettings

from .fakes import FakeS3Client


@pytest.fixture
def settings() -> ConnectionSettings:
    return ConnectionSettings(region="us-east-1", max_workers=4)


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def fake_cleaner(settings, fake_s3) -> S3BucketCleaner:
    return S3BucketCleaner(settings, s3_client=fake_s3)


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def cleaner(settings, s3_client) -> S3BucketCleaner:
    return S3BucketCleaner(settings, s3_client=s3_client)
