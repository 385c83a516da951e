"""
Translation quality audit.

Groups stored translations by product handle and flags products whose
translations are missing, partial, or still in the source language.
"""

from __future__ import annotations

import json
import logging
import re
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Sequence

from aliwarehouse.core.locales import ALL_LOCALES
from aliwarehouse.schemas.translations import ProductTranslation

logger = logging.getLogger(__name__)

AuditIssue = Literal["no_translations", "wrong_language", "partial", "ok"]

GERMAN_PATTERN = re.compile(
    r"\b(und|für|mit|aus|der|die|das|Wand|Lampe|Licht|Leuchte|Metall)\b", re.IGNORECASE
)
SPANISH_PATTERN = re.compile(
    r"\b(para|con|luz|solar|exterior|lámpara|jardín|patio)\b", re.IGNORECASE
)
PORTUGUESE_PATTERN = re.compile(
    r"\b(para|com|luz|solar|exterior|lâmpada|jardim|pátio|repelente)\b", re.IGNORECASE
)


def detect_language_issues(records: Sequence[ProductTranslation]) -> bool:
    """Return True when a product's translations look untranslated."""
    if len(records) < 2:
        return True
    if len({record.slug for record in records}) <= 2:
        return True

    for record in records:
        title = record.title
        if record.locale == "de" and GERMAN_PATTERN.search(title):
            continue
        if record.locale == "es" and SPANISH_PATTERN.search(title):
            continue
        if record.locale == "pt" and PORTUGUESE_PATTERN.search(title):
            continue

        if record.locale != "de" and GERMAN_PATTERN.search(title):
            return True
        # Spanish and Portuguese share vocabulary, so neither flags the other.
        if record.locale not in ("es", "pt") and SPANISH_PATTERN.search(title):
            return True
        if record.locale not in ("es", "pt") and PORTUGUESE_PATTERN.search(title):
            return True
    return False


@dataclass(slots=True)
class AuditResult:
    shopify_handle: str
    issue: AuditIssue
    unique_slugs: int
    locales_count: int
    sample_title: str
    needs_re_enrichment: bool


@dataclass(slots=True)
class AuditSummary:
    total_in_shopify: int
    with_translations: int
    properly_translated: int
    wrong_language: int
    partial: int
    missing: int


@dataclass(slots=True)
class AuditReport:
    timestamp: str
    summary: AuditSummary
    needs_re_enrichment: List[str] = field(default_factory=list)
    missing_translations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)

    def write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> "AuditReport":
        payload = json.loads(path.read_text(encoding="utf-8"))
        return cls(
            timestamp=payload["timestamp"],
            summary=AuditSummary(**payload["summary"]),
            needs_re_enrichment=list(payload.get("needs_re_enrichment", [])),
            missing_translations=list(payload.get("missing_translations", [])),
        )


def group_by_handle(
    records: Iterable[ProductTranslation],
) -> "OrderedDict[str, List[ProductTranslation]]":
    grouped: "OrderedDict[str, List[ProductTranslation]]" = OrderedDict()
    for record in records:
        grouped.setdefault(record.shopify_handle, []).append(record)
    return grouped


def classify_product(handle: str, records: Sequence[ProductTranslation]) -> AuditResult:
    unique_slugs = len({record.slug for record in records})
    issue: AuditIssue = "ok"
    needs_work = False

    if len(records) < len(ALL_LOCALES):
        issue = "partial"
        needs_work = True
    if unique_slugs <= 2 or detect_language_issues(records):
        issue = "wrong_language"
        needs_work = True

    return AuditResult(
        shopify_handle=handle,
        issue=issue,
        unique_slugs=unique_slugs,
        locales_count=len(records),
        sample_title=records[0].title if records else "",
        needs_re_enrichment=needs_work,
    )


def audit_translations(records: Iterable[ProductTranslation]) -> List[AuditResult]:
    grouped = group_by_handle(records)
    logger.info("Auditing %s products with translations", len(grouped))
    return [classify_product(handle, rows) for handle, rows in grouped.items()]


def build_report(
    results: Sequence[AuditResult],
    shopify_handles: Sequence[str],
    *,
    now: datetime | None = None,
) -> AuditReport:
    translated = {result.shopify_handle for result in results}
    missing = [handle for handle in shopify_handles if handle not in translated]
    by_issue = {
        issue: [r for r in results if r.issue == issue]
        for issue in ("ok", "wrong_language", "partial")
    }
    summary = AuditSummary(
        total_in_shopify=len(results) + len(missing),
        with_translations=len(results),
        properly_translated=len(by_issue["ok"]),
        wrong_language=len(by_issue["wrong_language"]),
        partial=len(by_issue["partial"]),
        missing=len(missing),
    )
    return AuditReport(
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
        summary=summary,
        needs_re_enrichment=[r.shopify_handle for r in results if r.needs_re_enrichment],
        missing_translations=missing,
    )


__all__ = [
    "AuditReport",
    "AuditResult",
    "AuditSummary",
    "audit_translations",
    "build_report",
    "classify_product",
    "detect_language_issues",
    "group_by_handle",
]
