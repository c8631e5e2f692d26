from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


def flatten(templates: Sequence[np.ndarray]) -> Dict[str, object]:
    """Convert templates to plain JSON-friendly lists, keeping order and values."""
    items = []
    for template in templates:
        arr = np.asarray(template, dtype=np.float32)
        items.append({"features": arr.tolist(), "length": int(arr.shape[0])})
    return {"count": len(items), "templates": items}


def is_well_formed(flattened: Optional[Dict[str, object]]) -> bool:
    if not isinstance(flattened, dict):
        return False
    templates = flattened.get("templates")
    if not isinstance(templates, list):
        return False
    return all(
        isinstance(item, dict) and isinstance(item.get("features"), list)
        for item in templates
    )


def restore(flattened: Optional[Dict[str, object]]) -> List[np.ndarray]:
    """Rebuild float32 templates; malformed input yields an empty list."""
    if not is_well_formed(flattened):
        logger.warning("MALFORMED_TEMPLATE: stored template structure is invalid")
        return []
    templates = flattened["templates"]  # type: ignore[index]
    return [np.asarray(item["features"], dtype=np.float32) for item in templates]
