# sourcing/models/import_record.py

"""Audit record of one product committed to the catalog."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class ImportRecord:
    """Who became what: the source listing and the catalog product."""

    source_id: str
    catalog_id: str
    original_name: str
    imported_name: str
    original_price: float
    imported_price: float
    markup: float
    markup_kind: str
    collection: str
    ai_enhanced: bool
    imported_at: datetime
