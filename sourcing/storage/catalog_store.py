# sourcing/storage/catalog_store.py

"""Writes committed products into the local catalog."""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from sourcing.config.settings import Settings
from sourcing.models.product import CatalogProduct

logger = logging.getLogger("sourcing.storage")


class CatalogCommitter(Protocol):
    """Anything that can persist a batch of catalog products."""

    def commit(self, products: list[CatalogProduct]) -> list[str]:
        """Persist ``products`` and return their new ids, in order."""
        ...


class JsonCatalogStore:
    """Catalog kept as a single JSON array on disk."""

    def __init__(self, path: Path | None = None) -> None:
        self.path: Path = path or Settings.CATALOG_PATH
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("JsonCatalogStore initialised at %s", self.path)

    def load(self) -> list[dict[str, Any]]:
        """Return every stored product record."""
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, list) else []

    def commit(self, products: list[CatalogProduct]) -> list[str]:
        """Append ``products`` with fresh ids and rewrite the file."""
        records = self.load()
        created_at = datetime.now().isoformat()
        ids: list[str] = []
        for product in products:
            product_id = uuid.uuid4().hex
            ids.append(product_id)
            records.append(
                {"id": product_id, "created_at": created_at}
                | product.to_dict()
            )

        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)

        logger.info(
            "Committed %d products to %s", len(products), self.path
        )
        return ids
