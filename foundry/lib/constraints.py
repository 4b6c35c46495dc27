"""Version policy: which discovered module versions may be published.

Two independent predicates, both optional:

- a semantic-version range such as ``>=1.0.0, <2.0.0`` or ``~> 1.2``
- a regular expression searched in the raw version string

A module is published only if it passes every configured predicate.

Pre-release versions follow the usual registry rules: ``1.2.0-beta`` only
satisfies a term whose own version carries a pre-release with the same
``major.minor.patch``, so ``>=1.0.0`` does not admit it while
``>=1.2.0-alpha`` does.
"""

from __future__ import annotations

import logging
import operator
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Pattern

import semver

from foundry.lib.errors import ConstraintParseError
from foundry.lib.spec import ModuleSpec

logger = logging.getLogger(__name__)

__all__ = [
    "PolicyDecision",
    "VersionConstraint",
    "VersionPolicy",
    "parse_semver",
]

_TERM_PATTERN = re.compile(r"^\s*(~>|>=|<=|!=|=|>|<)?\s*(\S+)\s*$")

_OPERATORS: dict[str, Callable[[semver.Version, semver.Version], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


def parse_semver(text: str) -> semver.Version:
    """Parse a version string, accepting a ``v`` prefix and ``1`` / ``1.2`` forms.

    Raises:
        ValueError: If the text is not a semantic version
    """
    text = text.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    return semver.Version.parse(text, optional_minor_and_patch=True)


def _release(version: semver.Version) -> tuple[int, int, int]:
    return (version.major, version.minor, version.patch)


@dataclass(frozen=True)
class _Term:
    op: str
    version: semver.Version
    # Number of numeric segments written in the constraint (1-3), for ~>
    precision: int

    def allows_prerelease(self, version: semver.Version) -> bool:
        if version.prerelease is None:
            return True
        if self.version.prerelease is None:
            return False
        return _release(self.version) == _release(version)

    def check(self, version: semver.Version) -> bool:
        if not self.allows_prerelease(version):
            return False
        if self.op == "~>":
            return self._check_pessimistic(version)
        return _OPERATORS[self.op](version, self.version)

    def _check_pessimistic(self, version: semver.Version) -> bool:
        if version < self.version:
            return False
        if self.precision == 1:
            return version.major == self.version.major
        upper = self.version.bump_major() if self.precision == 2 else self.version.bump_minor()
        # bump_* drops the pre-release, giving the first excluded release
        return version < upper.replace(prerelease=None, build=None)

    def __str__(self) -> str:
        return f"{self.op} {self.version}"


class VersionConstraint:
    """A parsed, comma-separated semantic-version range."""

    def __init__(self, expression: str):
        self.expression = expression
        self._terms = self._parse(expression)

    @staticmethod
    def _parse(expression: str) -> List[_Term]:
        if not expression or not expression.strip():
            raise ConstraintParseError("empty version constraint", constraint=expression)

        terms: List[_Term] = []
        for raw in expression.split(","):
            match = _TERM_PATTERN.match(raw)
            if match is None:
                raise ConstraintParseError(
                    f"malformed constraint term: {raw.strip()!r}",
                    constraint=expression,
                )
            op, text = match.group(1) or "=", match.group(2)
            try:
                version = parse_semver(text)
            except ValueError as e:
                raise ConstraintParseError(
                    f"invalid version in constraint term {raw.strip()!r}: {e}",
                    constraint=expression,
                ) from e
            precision = len(text.lstrip("vV").split("-", 1)[0].split("+", 1)[0].split("."))
            terms.append(_Term(op=op, version=version, precision=min(precision, 3)))
        return terms

    def check(self, version: semver.Version) -> bool:
        return all(term.check(version) for term in self._terms)

    def __str__(self) -> str:
        return ", ".join(str(term) for term in self._terms)

    def __repr__(self) -> str:
        return f"VersionConstraint({self.expression!r})"


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of evaluating a version against the policy."""

    allowed: bool
    rejected_by: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


class VersionPolicy:
    """Composition of the optional semver and regex predicates.

    Both expressions are parsed once, here, so a malformed expression fails
    before any module is processed.

    Example:
        >>> policy = VersionPolicy(semver_constraint=">=1.0.0", regex_constraint=r"^1\\.")
        >>> policy.allows_version("1.2.0").allowed
        True
        >>> policy.allows_version("0.9.0").rejected_by
        'semver'
        >>> policy.allows_version("2.0.0").rejected_by
        'regex'
    """

    def __init__(
        self,
        semver_constraint: Optional[str] = None,
        regex_constraint: Optional[str] = None,
    ) -> None:
        self.semver_constraint: Optional[VersionConstraint] = None
        self.regex_constraint: Optional[Pattern[str]] = None

        if semver_constraint:
            self.semver_constraint = VersionConstraint(semver_constraint)

        if regex_constraint:
            try:
                self.regex_constraint = re.compile(regex_constraint)
            except re.error as e:
                raise ConstraintParseError(
                    f"invalid version regex: {e}",
                    constraint=regex_constraint,
                ) from e

    @property
    def is_unrestricted(self) -> bool:
        return self.semver_constraint is None and self.regex_constraint is None

    def meets_semver(self, version: str) -> bool:
        """Check the semantic-version range; True when none is configured.

        Raises:
            ConstraintParseError: If ``version`` is not a semantic version
        """
        if self.semver_constraint is None:
            return True
        try:
            parsed = parse_semver(version)
        except ValueError as e:
            raise ConstraintParseError(
                f"module version is not a valid semantic version: {e}",
                constraint=self.semver_constraint.expression,
                version=version,
            ) from e
        return self.semver_constraint.check(parsed)

    def meets_regex(self, version: str) -> bool:
        if self.regex_constraint is None:
            return True
        return self.regex_constraint.search(version) is not None

    def allows_version(self, version: str) -> PolicyDecision:
        if not self.meets_semver(version):
            return PolicyDecision(False, "semver")
        if not self.meets_regex(version):
            return PolicyDecision(False, "regex")
        return PolicyDecision(True)

    def allows(self, spec: ModuleSpec) -> PolicyDecision:
        try:
            return self.allows_version(spec.version)
        except ConstraintParseError as e:
            raise ConstraintParseError(
                e.message,
                module=spec.display_name,
                constraint=e.constraint,
                version=e.version,
            ) from e.__cause__

    def __repr__(self) -> str:
        regex = self.regex_constraint.pattern if self.regex_constraint else None
        semver_expr = self.semver_constraint.expression if self.semver_constraint else None
        return f"VersionPolicy(semver={semver_expr!r}, regex={regex!r})"
