"""Profile completion scoring against a fixed field schema.

Profile fields and fun-facts fields use different emptiness rules:
profile fields are missing only when absent, None, "" or an empty list
(so False and 0 count as filled), while fun-facts fields are missing
whenever their value is falsy. Moderation screens rely on this split.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from config.profile_fields import FUN_FACTS_KEYS, PROFILE_SCORED_KEYS


@dataclass(frozen=True)
class ScoredFieldSet:
    """Ordered, disjoint lists of scored field names."""
    profile_keys: tuple[str, ...] = PROFILE_SCORED_KEYS
    fun_facts_keys: tuple[str, ...] = FUN_FACTS_KEYS

    @property
    def total(self) -> int:
        return len(self.profile_keys) + len(self.fun_facts_keys)


DEFAULT_FIELD_SET = ScoredFieldSet()


@dataclass
class CompletionResult:
    """Completion percentage and the scored fields still missing."""
    pct: int
    missing: list[str] = field(default_factory=list)


def _profile_value_missing(value: Any) -> bool:
    if value is None or value == "":
        return True
    return isinstance(value, (list, tuple)) and len(value) == 0


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_completion(
    profile: Mapping[str, Any] | None,
    fun_facts: Mapping[str, Any] | None,
    fields: ScoredFieldSet = DEFAULT_FIELD_SET,
) -> CompletionResult:
    """Score a candidate record.

    Args:
        profile: Profile field values; absent keys count as missing
        fun_facts: Fun-facts values, or None when the record has none
        fields: Scored field schema

    Returns:
        CompletionResult with `pct` in [0, 100] and missing field names,
        profile keys first, each group in schema order
    """
    profile = profile or {}
    missing: list[str] = []

    for key in fields.profile_keys:
        if _profile_value_missing(profile.get(key)):
            missing.append(key)

    for key in fields.fun_facts_keys:
        if fun_facts is None or not fun_facts.get(key):
            missing.append(key)

    total = fields.total
    if total == 0:
        return CompletionResult(pct=0, missing=missing)

    filled = total - len(missing)
    pct = _round_half_up(Decimal(100 * filled) / Decimal(total))
    return CompletionResult(pct=pct, missing=missing)
