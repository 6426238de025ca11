from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from rest_areas.services.heuristic_tables import HIGHWAY_ALIASES, HIGHWAY_FAMILIES
from rest_areas.services.types import DetectedHighway, RestAreaCandidate

_SUFFIX_PATTERN = re.compile(r"(고속도로|고속화도로|고속국도|자동차도|선)$")
_LONG_SUFFIX_PATTERN = re.compile(r"(고속도로|고속국도|자동차도)")
_WHITESPACE_PATTERN = re.compile(r"\s+")


@dataclass(slots=True, frozen=True)
class AllowedHighways:
    names: frozenset[str]
    codes: frozenset[str]

    def __bool__(self) -> bool:
        return bool(self.names or self.codes)


def normalize_highway_name(name: str | None) -> str:
    if not name:
        return ""
    collapsed = _WHITESPACE_PATTERN.sub("", name)
    return _LONG_SUFFIX_PATTERN.sub("선", collapsed)


def highway_base_name(name: str | None) -> str:
    if not name:
        return ""
    return _SUFFIX_PATTERN.sub("", _WHITESPACE_PATTERN.sub("", name))


def normalize_highway_code(code: str | None) -> str:
    # Operator datasets mix 3-digit ("001") and 4-digit ("0010") route codes.
    if not code:
        return ""
    code = code.strip()
    if len(code) == 4 and code.endswith("0"):
        return code[:3]
    return code


def highway_name_variants(name: str | None) -> set[str]:
    base = highway_base_name(name)
    if not base:
        return set()

    bases = {base, *HIGHWAY_ALIASES.get(base, ())}
    variants: set[str] = {_WHITESPACE_PATTERN.sub("", name or "")}
    for item in bases:
        variants.update({item, f"{item}선", f"{item}고속도로"})
    return variants


def highway_axis(name: str | None) -> str | None:
    return HIGHWAY_FAMILIES.get(highway_base_name(name))


def build_allowed_highways(
    detected: Iterable[DetectedHighway], hints: Iterable[str] = ()
) -> AllowedHighways:
    names: set[str] = set()
    codes: set[str] = set()
    for highway in detected:
        names.update(highway_name_variants(highway.highway_name))
        if highway.highway_code:
            codes.add(normalize_highway_code(highway.highway_code))
    for hint in hints:
        names.update(highway_name_variants(hint))
    return AllowedHighways(names=frozenset(names), codes=frozenset(codes))


def matches_allowed_highway(candidate: RestAreaCandidate, allowed: AllowedHighways) -> bool:
    code = normalize_highway_code(candidate.highway_code)
    if code and code in allowed.codes:
        return True
    return bool(highway_name_variants(candidate.highway_name) & allowed.names)
