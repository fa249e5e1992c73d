# sourcing/models/collection.py

"""Target catalog collections and their subcategories."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sourcing.config.settings import Settings

logger = logging.getLogger("sourcing.collections")


@dataclass
class Subcategory:
    """A subcategory inside a collection (e.g. Accent Chairs)."""

    id: str
    title: str


@dataclass
class Collection:
    """A top-level catalog collection (e.g. Furniture)."""

    id: str
    title: str
    subcategories: list[Subcategory] = field(
        default_factory=lambda: list[Subcategory]()
    )


def load_collections(path: Path | None = None) -> list[Collection]:
    """Load the collection registry from collections.json."""
    source = path or Settings.COLLECTIONS_PATH
    with open(source, encoding="utf-8") as f:
        raw: list[dict[str, Any]] = json.load(f)
    collections = [
        Collection(
            id=str(entry["id"]),
            title=str(entry.get("title", entry["id"])),
            subcategories=[
                Subcategory(id=str(s["id"]), title=str(s["title"]))
                for s in entry.get("subcategories", [])
            ],
        )
        for entry in raw
    ]
    logger.debug(
        "Loaded %d collections from %s", len(collections), source
    )
    return collections


def find_collection(
    collections: list[Collection], collection_id: str,
) -> Collection | None:
    """Return the collection with the given id, if any."""
    for collection in collections:
        if collection.id == collection_id:
            return collection
    return None


def resolve_subcategory_label(
    collections: list[Collection],
    collection_id: str,
    subcategory_id: str | None,
    fallback_category: str = "",
) -> str:
    """Resolve the display label for a subcategory choice.

    Falls back to the raw subcategory id, then the scraped category,
    then the generic label.
    """
    collection = find_collection(collections, collection_id)
    if collection and subcategory_id:
        for sub in collection.subcategories:
            if sub.id == subcategory_id:
                return sub.title
    return (
        subcategory_id
        or fallback_category
        or Settings.DEFAULT_CATEGORY_LABEL
    )
