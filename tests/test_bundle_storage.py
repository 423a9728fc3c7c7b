"""Tests for bundle storage backends."""
from __future__ import annotations

import io
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from app.storage.s3 import S3Storage


class TestFilesystemStorage:

    def test_save_get_list_delete(self, bundle_storage):
        path = bundle_storage.save_bundle(b'{"trees": {}}', "nightly")

        assert path.endswith("nightly.journey.json")
        assert bundle_storage.get_bundle("nightly") == b'{"trees": {}}'
        assert bundle_storage.list_bundles() == ["nightly"]
        assert bundle_storage.delete_bundle("nightly") is True
        assert bundle_storage.list_bundles() == []

    def test_missing_bundle(self, bundle_storage):
        with pytest.raises(FileNotFoundError):
            bundle_storage.get_bundle("absent")
        assert bundle_storage.delete_bundle("absent") is False

    def test_rejects_path_names(self, bundle_storage):
        with pytest.raises(ValueError):
            bundle_storage.save_bundle(b"{}", "../escape")


class TestS3Storage:

    @pytest.fixture
    def s3_client(self):
        client = Mock()
        client.head_bucket.return_value = {}
        return client

    def test_creates_missing_bucket(self, s3_client):
        s3_client.head_bucket.side_effect = ClientError({"Error": {"Code": "404"}}, "HeadBucket")
        S3Storage("journeys", s3_client=s3_client)
        s3_client.create_bucket.assert_called_once_with(Bucket="journeys")

    def test_save_and_get(self, s3_client):
        s3_client.get_object.return_value = {"Body": io.BytesIO(b"{}")}
        storage = S3Storage("journeys", s3_client=s3_client)

        assert storage.save_bundle(b"{}", "Login") == "s3://journeys/bundles/Login.journey.json"
        assert storage.get_bundle("Login") == b"{}"
        s3_client.get_object.assert_called_once_with(Bucket="journeys", Key="bundles/Login.journey.json")

    def test_missing_key(self, s3_client):
        s3_client.get_object.side_effect = ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        with pytest.raises(FileNotFoundError):
            S3Storage("journeys", s3_client=s3_client).get_bundle("absent")

    def test_list(self, s3_client):
        paginator = Mock()
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "bundles/b.journey.json"}, {"Key": "bundles/notes.txt"}]},
            {"Contents": [{"Key": "bundles/a.journey.json"}]},
        ]
        s3_client.get_paginator.return_value = paginator

        assert S3Storage("journeys", s3_client=s3_client).list_bundles() == ["a", "b"]
