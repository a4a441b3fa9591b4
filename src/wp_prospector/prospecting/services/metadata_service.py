"""Bulk site metadata updates (contact page, category, WordPress detection)."""

from __future__ import annotations

import logging

from wp_prospector.prospecting.errors import InputValidationError
from wp_prospector.prospecting.links import is_valid_url
from wp_prospector.prospecting.models import MetadataUpdate, MetadataUpdateReport, ResultCategory
from wp_prospector.prospecting.repository import SQLiteRepository

logger = logging.getLogger(__name__)


def parse_metadata_updates(payload: object) -> list[MetadataUpdate]:
    """Validate a raw request body into updates.

    Every item is checked before anything is written; one bad item rejects the
    whole batch with a per-index report in ``details``.
    """

    if not isinstance(payload, list):
        raise InputValidationError("Request body must be an array of objects")

    problems: list[str] = []
    updates: list[MetadataUpdate] = []
    for index, item in enumerate(payload):
        try:
            updates.append(_parse_item(item))
        except ValueError as error:
            problems.append(f"Item at index {index}: {error}")

    if problems:
        raise InputValidationError("Validation failed", details=tuple(problems))
    if not updates:
        raise InputValidationError("No valid updates provided")
    return updates


def parse_category(value: object) -> ResultCategory:
    """Accept a category as its integer value or its name (``"reviewed"``)."""

    if isinstance(value, bool):
        raise ValueError("category must be an integer or a category name")
    if isinstance(value, str):
        cleaned = value.strip()
        if cleaned.isdigit():
            value = int(cleaned)
        else:
            try:
                return ResultCategory[cleaned.upper().replace("-", "_").replace(" ", "_")]
            except KeyError:
                names = ", ".join(item.name.lower() for item in ResultCategory)
                raise ValueError(f"category must be one of {names} (got {value!r})") from None
    if not isinstance(value, int):
        raise ValueError("category must be an integer or a category name")
    try:
        return ResultCategory(value)
    except ValueError:
        allowed = ", ".join(str(int(item)) for item in ResultCategory)
        raise ValueError(f"category must be one of {allowed} (got {value!r})") from None


def _parse_item(item: object) -> MetadataUpdate:
    if not isinstance(item, dict):
        raise ValueError("must be an object")

    raw_id = item.get("id")
    if isinstance(raw_id, str) and raw_id.strip().isdigit():
        raw_id = int(raw_id.strip())
    if isinstance(raw_id, bool) or not isinstance(raw_id, int):
        raise ValueError("id must be an integer")

    contact_url = item.get("contact_url")
    if not isinstance(contact_url, str):
        raise ValueError("contact_url must be a string")
    contact_url = contact_url.strip()
    if contact_url and not is_valid_url(contact_url):
        raise ValueError("contact_url must be an absolute http(s) URL")

    if "category" not in item:
        raise ValueError("category is required")
    category = parse_category(item["category"])

    is_wordpress = item.get("is_wordpress")
    if not isinstance(is_wordpress, bool):
        raise ValueError("is_wordpress must be a boolean")

    return MetadataUpdate(
        result_id=raw_id,
        contact_url=contact_url,
        category=category,
        is_wordpress=is_wordpress,
    )


class MetadataService:
    """Applies externally gathered site metadata to a user's stored results."""

    def __init__(self, *, repository: SQLiteRepository) -> None:
        self.repository = repository

    def apply(self, payload: object, user_id: str) -> MetadataUpdateReport:
        updates = parse_metadata_updates(payload)
        report = self.repository.update_metadata(updates, user_id=user_id)
        if report.errors:
            logger.warning(
                "Metadata update skipped %d of %d items: %s",
                len(report.errors),
                len(updates),
                "; ".join(report.errors),
            )
        return report
