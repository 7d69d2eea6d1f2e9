"""Read word ids out of a word catalog file."""
import json
import logging
from pathlib import Path
from typing import Any, List

logger = logging.getLogger(__name__)


def extract_word_ids(catalog: Any) -> List[str]:
    """Word ids from a catalog document, in order and without duplicates.

    Accepts ``{"words": [...]}`` or a bare list. An entry is either an id
    string or an object carrying ``id`` (or ``word_key``).
    """
    if isinstance(catalog, dict):
        catalog = catalog.get("words")
    if not isinstance(catalog, list):
        return []

    ids = []
    seen = set()
    for entry in catalog:
        if isinstance(entry, dict):
            word_id = entry.get("id") or entry.get("word_key")
        else:
            word_id = entry
        if not isinstance(word_id, str):
            continue
        word_id = word_id.strip()
        if word_id and word_id not in seen:
            seen.add(word_id)
            ids.append(word_id)
    return ids


def load_catalog_ids(path: Path) -> List[str]:
    """Load a catalog JSON file and return its word ids."""
    with Path(path).open("r", encoding="utf-8") as handle:
        catalog = json.load(handle)
    ids = extract_word_ids(catalog)
    logger.info(f"Loaded {len(ids)} word id(s) from {path}")
    return ids
