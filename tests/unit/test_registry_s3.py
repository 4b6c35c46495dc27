"""Unit tests for the S3 registry backend with moto mocking."""

import io

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from foundry.lib.errors import AlreadyExistsError, NotFoundError, RegistryError
from foundry.lib.registry import S3Registry

BUCKET = "test-bucket"
KEY = "namespace=acme/name=vpc/provider=aws/version=1.0.0/acme-vpc-aws-1.0.0.tar.gz"


@pytest.fixture
def s3_client(aws_credentials):
    """Create a mocked S3 client with the test bucket."""
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=BUCKET)
        yield client


class TestS3RegistryInit:
    """Tests for S3Registry initialization."""

    def test_requires_bucket(self, aws_credentials):
        with mock_aws():
            with pytest.raises(ValueError, match="bucket is required"):
                S3Registry("")

    def test_prefix_is_normalized(self, s3_client):
        registry = S3Registry(BUCKET, prefix="/registry/", client=s3_client)
        assert registry.prefix == "registry"
        assert registry.module_key("acme", "vpc", "aws", "1.0.0") == f"registry/{KEY}"

    def test_region_from_environment(self, s3_client, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "ap-southeast-2")
        registry = S3Registry(BUCKET, client=s3_client)
        assert registry.region == "ap-southeast-2"


class TestS3RegistryDownloadUrl:
    """Tests for the S3 download locator."""

    def test_configured_region(self, s3_client):
        registry = S3Registry(BUCKET, region="eu-west-1", client=s3_client)
        assert registry.download_url(KEY) == (
            f"s3::https://s3-eu-west-1.amazonaws.com/{BUCKET}/{KEY}"
        )

    def test_region_looked_up_from_bucket(self, aws_credentials):
        with mock_aws():
            client = boto3.client("s3", region_name="eu-central-1")
            client.create_bucket(
                Bucket="eu-bucket",
                CreateBucketConfiguration={"LocationConstraint": "eu-central-1"},
            )
            registry = S3Registry("eu-bucket", client=client)

            assert registry.download_url(KEY).startswith(
                "s3::https://s3-eu-central-1.amazonaws.com/eu-bucket/"
            )

    def test_us_east_1_bucket_has_no_location_constraint(self, s3_client):
        registry = S3Registry(BUCKET, client=s3_client)
        assert registry.region == "us-east-1"

    def test_region_lookup_failure(self, s3_client):
        registry = S3Registry("no-such-bucket", client=s3_client)
        with pytest.raises(RegistryError, match="failed to determine region"):
            registry.download_url(KEY)


class TestS3RegistryOperations:
    """Tests for upload, lookup and listing against moto."""

    def test_upload_and_get(self, s3_client):
        registry = S3Registry(BUCKET, region="us-east-1", client=s3_client)

        module = registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"archive"))

        assert module.key == KEY
        body = s3_client.get_object(Bucket=BUCKET, Key=KEY)["Body"].read()
        assert body == b"archive"
        assert registry.get_module("acme", "vpc", "aws", "1.0.0") == module

    def test_get_missing(self, s3_client):
        registry = S3Registry(BUCKET, region="us-east-1", client=s3_client)
        with pytest.raises(NotFoundError):
            registry.get_module("acme", "vpc", "aws", "1.0.0")

    def test_duplicate_upload_rejected(self, s3_client):
        registry = S3Registry(BUCKET, region="us-east-1", client=s3_client)
        registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"first"))

        with pytest.raises(AlreadyExistsError):
            registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"second"))

        body = s3_client.get_object(Bucket=BUCKET, Key=KEY)["Body"].read()
        assert body == b"first"

    def test_list_versions_with_prefix(self, s3_client):
        registry = S3Registry(BUCKET, prefix="registry", region="us-east-1", client=s3_client)
        for version in ("1.0.0", "1.1.0"):
            registry.upload_module("acme", "vpc", "aws", version, io.BytesIO(b"x"))
        registry.upload_module("acme", "vpc", "aws2", "9.0.0", io.BytesIO(b"x"))

        modules = registry.list_module_versions("acme", "vpc", "aws")

        assert sorted(m.version for m in modules) == ["1.0.0", "1.1.0"]
        assert all(m.key.startswith("registry/namespace=acme/") for m in modules)

    def test_list_paginates(self, s3_client):
        registry = S3Registry(BUCKET, region="us-east-1", client=s3_client)
        for patch in range(5):
            registry.upload_module("acme", "vpc", "aws", f"1.0.{patch}", io.BytesIO(b"x"))

        original = s3_client.get_paginator

        def small_pages(name):
            paginator = original(name)
            paginate = paginator.paginate

            def paginate_small(**kwargs):
                return paginate(PaginationConfig={"PageSize": 2}, **kwargs)

            paginator.paginate = paginate_small
            return paginator

        s3_client.get_paginator = small_pages

        assert len(registry.list_module_versions("acme", "vpc", "aws")) == 5


class TestS3RegistryErrors:
    """Tests for error classification on head_object."""

    def test_non_404_error_propagates(self):
        class DeniedClient:
            def head_object(self, Bucket, Key):
                raise ClientError(
                    {"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadObject"
                )

        registry = S3Registry(BUCKET, region="us-east-1", client=DeniedClient())

        with pytest.raises(RegistryError, match="failed to check") as exc_info:
            registry.get_module("acme", "vpc", "aws", "1.0.0")

        assert not isinstance(exc_info.value, NotFoundError)

    @pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
    def test_missing_codes(self, code):
        class MissingClient:
            def head_object(self, Bucket, Key):
                raise ClientError({"Error": {"Code": code, "Message": "Not Found"}}, "HeadObject")

        registry = S3Registry(BUCKET, region="us-east-1", client=MissingClient())

        with pytest.raises(NotFoundError):
            registry.get_module("acme", "vpc", "aws", "1.0.0")
