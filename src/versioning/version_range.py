"""npm-style version range expressions.

Supported grammar::

    range      := alternative ( "||" alternative )*
    alternative:= hyphen | term ( whitespace term )*
    hyphen     := version " - " version
    term       := "*" | "" | "^" version | "~" version
                | (">=" | "<=" | ">" | "<" | "=") version
                | dotted-wildcard | version

Examples::

    ^1.2.3         >=1.2.3 <2.0.0
    ^0.2.3         >=0.2.3 <0.3.0
    ^0.0.3         =0.0.3
    ~1.2.3         >=1.2.3 <1.3.0
    ~1.2 / ~1      same minor / same major
    1.2.x, 1.*     shared leading components
    1.0.0 - 2.0.0  inclusive bounds

Anything that cannot be interpreted fails closed: it is satisfied by no
version.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, TypeVar, Union

from .semver import SemanticVersion, VersionParseError

T = TypeVar("T", str, SemanticVersion)

_HYPHEN_RE = re.compile(r"^(\S+)\s+-\s+(\S+)$")
_OPERATOR_GAP_RE = re.compile(r"(>=|<=|>|<|=|\^|~)\s+")
_WILDCARD_RE = re.compile(r"^[vV=]?(\d+|[xX*])(?:\.(\d+|[xX*]))?(?:\.(\d+|[xX*]))?$")
_WILDCARDS = frozenset({"x", "X", "*"})
_TRAILING_WILDCARD_RE = re.compile(r"(?:\.[xX*])+$")


class VersionRange:
    """A parsed, immutable range expression."""

    __slots__ = ("_expression",)

    def __init__(self, expression: Optional[str] = None):
        self._expression = (expression or "").strip()

    @property
    def expression(self) -> str:
        return self._expression

    @property
    def matches_any(self) -> bool:
        """True for the empty and ``*`` expressions."""
        return self._expression in ("", "*", "x", "X")

    def is_satisfied_by(self, version: Union[str, SemanticVersion, None]) -> bool:
        """Return True if the version lies inside this range.

        Strings that do not parse as a version never satisfy a range.
        """
        if isinstance(version, SemanticVersion):
            parsed = version
        else:
            parsed = SemanticVersion.try_parse(version)
            if parsed is None:
                return False
        return _match_expression(self._expression, parsed)

    def __contains__(self, version: Union[str, SemanticVersion]) -> bool:
        return self.is_satisfied_by(version)

    def select_best_version(self, candidates: Iterable[T]) -> Optional[T]:
        """Return the highest candidate satisfying the range, or None.

        Candidates may be strings or SemanticVersion objects; the matching
        candidate is returned as given. Unparseable strings are ignored. When
        two candidates share major.minor.patch the release wins over the
        prerelease, otherwise the first one seen is kept.
        """
        best: Optional[T] = None
        best_key = None
        for candidate in candidates:
            if isinstance(candidate, SemanticVersion):
                parsed = candidate
            else:
                parsed = SemanticVersion.try_parse(candidate)
            if parsed is None or not _match_expression(self._expression, parsed):
                continue
            key = (parsed.key(), not parsed.is_prerelease)
            if best_key is None or key > best_key:
                best, best_key = candidate, key
        return best

    def intersects(self, other: "VersionRange", candidates: Iterable[Union[str, SemanticVersion]]) -> bool:
        """True if some candidate satisfies both this range and ``other``."""
        return any(self.is_satisfied_by(c) and other.is_satisfied_by(c) for c in candidates)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionRange):
            return NotImplemented
        return self._expression == other._expression

    def __hash__(self) -> int:
        return hash(self._expression)

    def __str__(self) -> str:
        return self._expression or "*"

    def __repr__(self) -> str:
        return f"VersionRange('{self._expression}')"


def _match_expression(expression: str, version: SemanticVersion) -> bool:
    expression = expression.strip()

    if "||" in expression:
        return any(_match_expression(part, version) for part in expression.split("||"))

    hyphen = _HYPHEN_RE.match(expression)
    if hyphen:
        return _match_hyphen(version, hyphen.group(1), hyphen.group(2))

    # ">= 1.0.0" is the same term as ">=1.0.0"
    expression = _OPERATOR_GAP_RE.sub(r"\1", expression)
    terms = expression.split()
    if len(terms) > 1:
        return all(_match_term(term, version) for term in terms)
    return _match_term(expression, version)


def _match_term(term: str, version: SemanticVersion) -> bool:
    try:
        if term in ("", "*", "x", "X"):
            return True
        if term.startswith("^"):
            return _match_caret(version, term[1:])
        if term.startswith("~"):
            return _match_tilde(version, term[1:])
        if term.startswith(">="):
            return version >= SemanticVersion.parse(term[2:])
        if term.startswith("<="):
            return version <= SemanticVersion.parse(term[2:])
        if term.startswith(">"):
            return version > SemanticVersion.parse(term[1:])
        if term.startswith("<"):
            return version < SemanticVersion.parse(term[1:])
        wildcard = _WILDCARD_RE.match(term)
        if wildcard and any(part in _WILDCARDS for part in wildcard.groups() if part):
            return _match_wildcard(version, wildcard.groups())
        return version == SemanticVersion.parse(_strip_prefix(term))
    except (VersionParseError, ValueError):
        return False


def _strip_prefix(text: str) -> str:
    if text.startswith("="):
        text = text[1:]
    if text[:1] in ("v", "V"):
        text = text[1:]
    return text


def _match_caret(version: SemanticVersion, base_text: str) -> bool:
    base = SemanticVersion.parse(_TRAILING_WILDCARD_RE.sub("", _strip_prefix(base_text)))
    if version < base:
        return False
    if base.major == 0 and base.minor == 0:
        return version.major == 0 and version.minor == 0 and version.patch == base.patch
    if base.major == 0:
        return version.major == 0 and version.minor == base.minor
    return version.major == base.major


def _match_tilde(version: SemanticVersion, base_text: str) -> bool:
    base_text = _TRAILING_WILDCARD_RE.sub("", _strip_prefix(base_text.strip()))
    parts = base_text.split("-", 1)[0].split(".")
    if len(parts) == 1:
        return version.major == int(parts[0])
    if len(parts) == 2:
        return version.major == int(parts[0]) and version.minor == int(parts[1])
    base = SemanticVersion.parse(base_text)
    return version >= base and version.major == base.major and version.minor == base.minor


def _match_hyphen(version: SemanticVersion, low: str, high: str) -> bool:
    try:
        lower = SemanticVersion.parse(_strip_prefix(low))
        upper = SemanticVersion.parse(_strip_prefix(high))
    except VersionParseError:
        return False
    return lower <= version <= upper


def _match_wildcard(version: SemanticVersion, components) -> bool:
    fixed = []
    for part in components:
        if part is None or part in _WILDCARDS:
            break
        fixed.append(int(part))
    # "1.x.3" pins a component after a wildcard, which has no meaning
    if any(part not in _WILDCARDS for part in components[len(fixed):] if part is not None):
        return False
    return list(version.key()[:len(fixed)]) == fixed
