"""Module descriptor parsing.

Each publishable module directory carries a descriptor file (by default
``module-registry.hcl``) declaring its identity::

    metadata {
      namespace = "acme"
      name      = "vpc"
      provider  = "aws"
      version   = "1.0.0"
    }

Anything else in the file is kept as free-form metadata and is not
interpreted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import hcl2

from foundry.lib.errors import SpecParseError, ValidationError

logger = logging.getLogger(__name__)

__all__ = [
    "IDENTITY_FIELDS",
    "SPEC_FILE_NAME",
    "ModuleSpec",
    "parse_spec",
    "parse_spec_file",
]

SPEC_FILE_NAME = "module-registry.hcl"

IDENTITY_FIELDS = ("namespace", "name", "provider", "version")


@dataclass(frozen=True)
class ModuleSpec:
    """Identity and metadata of a module, decoded from its descriptor."""

    namespace: str
    name: str
    provider: str
    version: str
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)
    path: Optional[Path] = field(default=None, compare=False)

    @property
    def identity(self) -> Tuple[str, str, str, str]:
        return (self.namespace, self.name, self.provider, self.version)

    @property
    def display_name(self) -> str:
        return f"{self.namespace}/{self.name}/{self.provider}@{self.version}"

    @property
    def root(self) -> Optional[Path]:
        """Directory holding the descriptor, i.e. the module root."""
        return self.path.parent if self.path is not None else None


def _unquote(value: Any) -> Any:
    # Some python-hcl2 releases keep the quotes of string literals.
    if isinstance(value, str) and len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _single_block(document: Dict[str, Any], block: str) -> Optional[Dict[str, Any]]:
    value = document.get(block)
    if isinstance(value, list):
        if len(value) != 1 or not isinstance(value[0], dict):
            return None
        value = value[0]
    return value if isinstance(value, dict) else None


def parse_spec(text: str, path: Optional[Union[str, Path]] = None) -> ModuleSpec:
    """Parse descriptor text into a ModuleSpec.

    Args:
        text: HCL source of the descriptor
        path: Where the text was read from (for error context)

    Raises:
        SpecParseError: Malformed HCL, or no single ``metadata`` block
        ValidationError: A required identity field is missing or empty
    """
    source = str(path) if path is not None else None

    try:
        document = hcl2.loads(text)
    except Exception as e:
        raise SpecParseError("failed to parse module descriptor", path=source, cause=e) from e

    metadata = _single_block(document, "metadata")
    if metadata is None:
        raise SpecParseError(
            "module descriptor must contain exactly one metadata block",
            path=source,
        )

    # Newer python-hcl2 releases mark blocks with dunder keys.
    values = {
        key: _unquote(value)
        for key, value in metadata.items()
        if not key.startswith("__")
    }

    for name in IDENTITY_FIELDS:
        value = values.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(
                f"{name} not defined",
                field=name,
                details={"path": source} if source else {},
            )
        if not isinstance(value, str):
            raise ValidationError(
                f"{name} must be a string, got {type(value).__name__}",
                field=name,
                details={"path": source} if source else {},
            )

    extra = {key: value for key, value in document.items() if key != "metadata"}
    extra.update({key: value for key, value in values.items() if key not in IDENTITY_FIELDS})

    return ModuleSpec(
        namespace=values["namespace"].strip(),
        name=values["name"].strip(),
        provider=values["provider"].strip(),
        version=values["version"].strip(),
        metadata=extra,
        path=Path(path) if path is not None else None,
    )


def parse_spec_file(path: Union[str, Path]) -> ModuleSpec:
    """Read and parse a descriptor file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecParseError("failed to read module descriptor", path=str(path), cause=e) from e

    spec = parse_spec(text, path)
    logger.debug("Parsed module spec %s from %s", spec.display_name, path)
    return spec
