"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple

import pytest

from foundry.lib.registry.base import Registry

DESCRIPTOR_TEMPLATE = """\
metadata {{
  namespace = "{namespace}"
  name      = "{name}"
  provider  = "{provider}"
  version   = "{version}"
}}
"""


def write_module(
    root: Path,
    namespace: str = "acme",
    name: str = "vpc",
    provider: str = "aws",
    version: str = "1.0.0",
    files: Optional[Dict[str, str]] = None,
    spec_file_name: str = "module-registry.hcl",
) -> Path:
    """Create a module directory with a descriptor and some files."""
    root.mkdir(parents=True, exist_ok=True)
    (root / spec_file_name).write_text(
        DESCRIPTOR_TEMPLATE.format(
            namespace=namespace, name=name, provider=provider, version=version
        )
    )
    for rel, content in (files or {"main.tf": f'# {name} {version}\n'}).items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


class MemoryRegistry(Registry):
    """In-memory registry recording every storage primitive call."""

    def __init__(self, prefix: Optional[str] = None) -> None:
        super().__init__(prefix)
        self.objects: Dict[str, bytes] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_put: Optional[Exception] = None

    @property
    def scheme(self) -> str:
        return "memory"

    def download_url(self, key: str) -> str:
        return f"memory://{key}"

    def _exists(self, key: str) -> bool:
        self.calls.append(("exists", key))
        return key in self.objects

    def _iter_keys(self, prefix: str) -> Iterator[str]:
        self.calls.append(("list", prefix))
        for key in list(self.objects):
            if key.startswith(prefix):
                yield key

    def _put(self, key: str, content: BinaryIO) -> None:
        self.calls.append(("put", key))
        if self.fail_put is not None:
            raise self.fail_put
        self.objects[key] = content.read()


class FakeBlob:
    def __init__(self, bucket: "FakeBucket", name: str) -> None:
        self.bucket = bucket
        self.name = name

    def upload_from_file(self, fileobj: BinaryIO) -> None:
        self.bucket.objects[self.name] = fileobj.read()


class FakeBucket:
    def __init__(self, name: str) -> None:
        self.name = name
        self.objects: Dict[str, bytes] = {}

    def blob(self, name: str) -> FakeBlob:
        return FakeBlob(self, name)

    def get_blob(self, name: str) -> Optional[FakeBlob]:
        if name in self.objects:
            return FakeBlob(self, name)
        return None


class FakeGCSClient:
    """Stands in for google.cloud.storage.Client."""

    def __init__(self) -> None:
        self.buckets: Dict[str, FakeBucket] = {}

    def bucket(self, name: str) -> FakeBucket:
        return self.buckets.setdefault(name, FakeBucket(name))

    def list_blobs(self, bucket_name: str, prefix: str = "") -> Iterator[FakeBlob]:
        bucket = self.bucket(bucket_name)
        for name in sorted(bucket.objects):
            if name.startswith(prefix):
                yield FakeBlob(bucket, name)


@pytest.fixture
def memory_registry() -> MemoryRegistry:
    return MemoryRegistry()


@pytest.fixture
def gcs_client() -> FakeGCSClient:
    return FakeGCSClient()


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)
    monkeypatch.delenv("AWS_REGION", raising=False)


@pytest.fixture(autouse=True)
def isolated_settings_env(monkeypatch, tmp_path):
    """Keep MODULE_REGISTRY_* variables and .env files out of tests."""
    for var in list(os.environ):
        if var.startswith("MODULE_REGISTRY_"):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
