"""Tests for the backend-agnostic Registry upload/lookup protocol."""

import io

import pytest

from foundry.lib.errors import (
    AlreadyExistsError,
    IntegrityError,
    KeyDecodeError,
    NotFoundError,
    UploadFailedError,
    ValidationError,
)
from foundry.lib.registry import Module
from tests.conftest import MemoryRegistry

KEY = "namespace=acme/name=vpc/provider=aws/version=1.0.0/acme-vpc-aws-1.0.0.tar.gz"


class TestUploadModule:
    """Tests for Registry.upload_module()."""

    def test_upload_then_get(self, memory_registry):
        module = memory_registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"v1"))

        assert module == Module(
            namespace="acme",
            name="vpc",
            provider="aws",
            version="1.0.0",
            download_url=f"memory://{KEY}",
            key=KEY,
        )
        assert memory_registry.objects[KEY] == b"v1"
        assert memory_registry.get_module("acme", "vpc", "aws", "1.0.0") == module

    def test_probe_precedes_write(self, memory_registry):
        memory_registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"v1"))

        ops = [op for op, _ in memory_registry.calls]
        assert ops == ["exists", "put", "exists"]

    @pytest.mark.parametrize("field", ["namespace", "name", "provider", "version"])
    def test_empty_field_makes_no_backend_call(self, memory_registry, field):
        identity = {"namespace": "acme", "name": "vpc", "provider": "aws", "version": "1.0.0"}
        identity[field] = ""

        with pytest.raises(ValidationError) as exc_info:
            memory_registry.upload_module(content=io.BytesIO(b"x"), **identity)

        assert exc_info.value.field == field
        assert memory_registry.calls == []

    def test_existing_archive_is_never_replaced(self, memory_registry):
        memory_registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"first"))

        with pytest.raises(AlreadyExistsError) as exc_info:
            memory_registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"second"))

        assert memory_registry.objects[KEY] == b"first"
        assert exc_info.value.key == KEY
        assert exc_info.value.details["download_url"] == f"memory://{KEY}"
        assert ("put", KEY) not in memory_registry.calls[2:]

    def test_backend_failure(self, memory_registry):
        memory_registry.fail_put = ConnectionError("connection reset")

        with pytest.raises(UploadFailedError) as exc_info:
            memory_registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"x"))

        assert isinstance(exc_info.value.cause, ConnectionError)
        assert exc_info.value.module == "acme/vpc/aws@1.0.0"
        assert KEY not in memory_registry.objects

    def test_prefix(self):
        registry = MemoryRegistry(prefix="/modules/")
        module = registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"x"))
        assert module.key == f"modules/{KEY}"

    def test_prefix_with_version_segment(self):
        registry = MemoryRegistry(prefix="registry/version=2")
        registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"x"))

        modules = registry.list_module_versions("acme", "vpc", "aws")

        assert [m.version for m in modules] == ["1.0.0"]
        assert registry.get_module("acme", "vpc", "aws", "1.0.0").version == "1.0.0"


class TestGetModule:
    """Tests for Registry.get_module()."""

    def test_not_found(self, memory_registry):
        with pytest.raises(NotFoundError) as exc_info:
            memory_registry.get_module("acme", "vpc", "aws", "9.9.9")
        assert exc_info.value.module == "acme/vpc/aws@9.9.9"

    def test_decoded_version_mismatch(self):
        class DriftingRegistry(MemoryRegistry):
            def module_key(self, namespace, name, provider, version):
                return super().module_key(namespace, name, provider, version + "-drift")

        registry = DriftingRegistry()
        registry.objects[registry.module_key("acme", "vpc", "aws", "1.0.0")] = b"x"

        with pytest.raises(IntegrityError) as exc_info:
            registry.get_module("acme", "vpc", "aws", "1.0.0")

        assert exc_info.value.expected == "1.0.0"
        assert exc_info.value.actual == "1.0.0-drift"


class TestListModuleVersions:
    """Tests for Registry.list_module_versions()."""

    def test_lists_versions(self, memory_registry):
        for version in ("1.0.0", "1.1.0", "2.0.0"):
            memory_registry.upload_module("acme", "vpc", "aws", version, io.BytesIO(b"x"))

        versions = {m.version for m in memory_registry.list_module_versions("acme", "vpc", "aws")}
        assert versions == {"1.0.0", "1.1.0", "2.0.0"}

    def test_empty(self, memory_registry):
        assert memory_registry.list_module_versions("acme", "vpc", "aws") == []

    def test_ignores_other_providers_and_non_archives(self, memory_registry):
        memory_registry.upload_module("acme", "vpc", "aws", "1.0.0", io.BytesIO(b"x"))
        memory_registry.upload_module("acme", "vpc", "aws2", "5.0.0", io.BytesIO(b"x"))
        memory_registry.objects[
            "namespace=acme/name=vpc/provider=aws/version=1.0.0/README.md"
        ] = b"notes"

        modules = memory_registry.list_module_versions("acme", "vpc", "aws")

        assert [m.version for m in modules] == ["1.0.0"]

    def test_malformed_key(self, memory_registry):
        memory_registry.objects["namespace=acme/name=vpc/provider=aws/stray.tar.gz"] = b"x"

        with pytest.raises(KeyDecodeError):
            memory_registry.list_module_versions("acme", "vpc", "aws")
