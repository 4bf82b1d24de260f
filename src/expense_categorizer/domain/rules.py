"""Rule catalog: the static per-category keyword, script-pattern and amount tables.

The catalog is data. It is read once from a versioned YAML file so that
categories and keywords can change without touching the scoring code::

    version: 3
    fallback_category: Miscellaneous
    amount_requires_text_match: true
    scripts:
      - name: arabic
        ranges: [["0600", "06FF"], ["0750", "077F"]]
    categories:
      - name: Utilities
        base_confidence: 0.92
        keywords: [electricity, wapda]
        script_patterns: [بجلی]
        amount_ranges: [{min: 1000, max: 50000, weight: 0.9}]
"""
import os
from collections.abc import Iterator
from decimal import Decimal
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from expense_categorizer.core.errors import CatalogError
from expense_categorizer.domain.tokenizer import DEFAULT_SCRIPT_RANGES, ScriptRange
from expense_categorizer.logger import get_logger

logger = get_logger(__name__)

DEFAULT_FALLBACK_CATEGORY = "Miscellaneous"


class AmountRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: Decimal
    max: Decimal
    weight: float = Field(ge=0.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "AmountRange":
        if self.min > self.max:
            raise ValueError(f"amount range min {self.min} is above max {self.max}")
        return self

    def contains(self, amount: Decimal) -> bool:
        return self.min <= amount <= self.max


class RuleEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    category_name: str = Field(alias="name")
    keywords: tuple[str, ...] = ()
    script_patterns: tuple[str, ...] = ()
    amount_ranges: tuple[AmountRange, ...] = ()
    base_confidence: float = Field(gt=0.0, le=1.0)

    @field_validator("keywords", mode="before")
    @classmethod
    def _normalize_keywords(cls, value: Any) -> tuple[str, ...]:
        return _dedupe(str(k).strip().lower() for k in value or ())

    @field_validator("script_patterns", mode="before")
    @classmethod
    def _normalize_patterns(cls, value: Any) -> tuple[str, ...]:
        return _dedupe(str(p).strip() for p in value or ())

    def amount_weight(self, amount: Decimal) -> float:
        """Highest weight among the ranges containing ``amount`` (0 when none)."""
        weights = [r.weight for r in self.amount_ranges if r.contains(amount)]
        return max(weights, default=0.0)


def _dedupe(values: Iterator[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        if value:
            seen.setdefault(value, None)
    return tuple(seen)


class RuleCatalog:
    def __init__(
        self,
        entries: list[RuleEntry],
        *,
        version: str = "1",
        fallback_category: str = DEFAULT_FALLBACK_CATEGORY,
        amount_requires_text_match: bool = True,
        script_ranges: tuple[ScriptRange, ...] = DEFAULT_SCRIPT_RANGES,
    ):
        by_name: dict[str, RuleEntry] = {}
        for entry in entries:
            if entry.category_name in by_name:
                raise CatalogError(f"Category '{entry.category_name}' appears twice in the rule catalog")
            by_name[entry.category_name] = entry
        self._entries = tuple(entries)
        self._by_name = by_name
        self.version = version
        self.fallback_category = fallback_category
        self.amount_requires_text_match = amount_requires_text_match
        self.script_ranges = script_ranges

    def lookup(self, category_name: str) -> RuleEntry | None:
        return self._by_name.get(category_name)

    def all_entries(self) -> tuple[RuleEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuleCatalog":
        if not isinstance(data, dict):
            raise CatalogError("Rule catalog must be a mapping")
        try:
            entries = [RuleEntry.model_validate(item) for item in data.get("categories") or []]
        except ValidationError as exc:
            raise CatalogError(f"Invalid rule entry: {exc}") from exc
        if not entries:
            raise CatalogError("Rule catalog defines no categories")

        return cls(
            entries,
            version=str(data.get("version", "1")),
            fallback_category=data.get("fallback_category") or DEFAULT_FALLBACK_CATEGORY,
            amount_requires_text_match=bool(data.get("amount_requires_text_match", True)),
            script_ranges=_parse_scripts(data.get("scripts")),
        )


def _parse_code_point(raw: Any) -> int:
    if isinstance(raw, int):
        return raw
    text = str(raw).strip().upper()
    if text.startswith("U+"):
        text = text[2:]
    return int(text, 16)


def _parse_scripts(raw_scripts: Any) -> tuple[ScriptRange, ...]:
    if raw_scripts is None:
        return DEFAULT_SCRIPT_RANGES
    ranges: list[ScriptRange] = []
    try:
        for script in raw_scripts:
            name = str(script["name"])
            for start, end in script.get("ranges", []):
                ranges.append(ScriptRange(name, _parse_code_point(start), _parse_code_point(end)))
    except (KeyError, TypeError, ValueError) as exc:
        raise CatalogError(f"Invalid script range definition: {exc}") from exc
    return tuple(ranges)


def default_rules_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "rules.yaml")


def load_rule_catalog(path: str | None = None) -> RuleCatalog:
    rules_path = path or default_rules_path()
    if not os.path.exists(rules_path):
        raise CatalogError(f"Rule catalog not found: {rules_path}")

    try:
        with open(rules_path, encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise CatalogError(f"Rule catalog {rules_path} is not valid YAML: {exc}") from exc

    catalog = RuleCatalog.from_dict(data or {})
    logger.info(
        "[RULES] Loaded rule catalog v%s from %s (%d categories, %d script ranges).",
        catalog.version,
        rules_path,
        len(catalog),
        len(catalog.script_ranges),
    )
    return catalog
