"""Shared fixtures for app tests."""

import uuid
from pathlib import Path

import boto3
import pytest
from django.contrib.auth import get_user_model
from moto import mock_aws

from server.apps.drive.models import File, UserQuota

User = get_user_model()

BUCKET_NAME = 'drive'


@pytest.fixture(autouse=True)
def _fast_password_hasher(settings):
    """Hash share and user passwords quickly in tests."""
    settings.PASSWORD_HASHERS = [
        'django.contrib.auth.hashers.MD5PasswordHasher',
    ]


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with the drive bucket.

    Yields:
        boto3 S3 resource with drive bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=BUCKET_NAME)

        yield conn


@pytest.fixture
def bucket_keys(mock_s3):
    """Read back which keys are in the drive bucket.

    Returns:
        Callable returning the set of stored keys.
    """
    def factory() -> set[str]:
        return {obj.key for obj in mock_s3.Bucket(BUCKET_NAME).objects.all()}

    return factory


@pytest.fixture
def quota(user):
    """Create a 10 MB quota for the test user.

    Returns:
        UserQuota instance with nothing used.
    """
    return UserQuota.objects.create(
        user=user,
        quota_bytes=10 * 1024 * 1024,
        used_bytes=0,
    )


@pytest.fixture
def make_file(user, mock_s3):
    """Create file records with their content in mock S3.

    Returns:
        Factory creating a File; pass ``upload=False`` to skip the
        content.
    """
    def factory(  # noqa: WPS211
        name='test.txt',
        *,
        folder=None,
        size_bytes=100,
        owner=None,
        content=None,
        upload=True,
    ) -> File:
        owner = owner or user
        storage_name = f'{owner.id}/{uuid.uuid4().hex}{Path(name).suffix}'
        if upload:
            mock_s3.Bucket(BUCKET_NAME).put_object(
                Key=storage_name,
                Body=content if content is not None else b'x' * size_bytes,
            )
        return File.objects.create(
            user=owner,
            name=name,
            original_name=name,
            file=storage_name,
            size_bytes=size_bytes,
            mime_type='text/plain',
            folder=folder,
        )

    return factory
