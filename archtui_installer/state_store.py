from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .outcome import PipelineOutcome

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_record(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    if _detect_format(p) in {"yaml", "yml"}:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    else:
        data = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError(f"Outcome file must be an object/dict, got {type(data)}")
    return data


def _write_record(p: Path, record: Dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    if _detect_format(p) in {"yaml", "yml"}:
        p.write_text(yaml.safe_dump(record, sort_keys=False) + "\n", encoding="utf-8")
    else:
        p.write_text(json.dumps(record, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def save_outcome(
    path: str,
    outcome: PipelineOutcome,
    *,
    plan_summary: Optional[List[Tuple[str, str]]] = None,
) -> Optional[str]:
    """Flush the audit trail. Called after every stage.

    Falls back to a file in the working directory when ``path`` is not
    writable. A flush that fails there too is logged and dropped.

    Returns the path actually written, or None.
    """

    record: Dict[str, Any] = {"outcome": outcome.to_dict()}
    if plan_summary is not None:
        record["plan"] = {k: v for k, v in plan_summary}

    p = Path(path)
    try:
        _write_record(p, record)
    except OSError as e:
        fallback = Path.cwd() / ("archtui-installer.outcome" + (p.suffix or ".json"))
        logger.warning("[WARN] Cannot write outcome to %s (%s); using %s", str(p), e, str(fallback))
        try:
            _write_record(fallback, record)
        except OSError as e2:
            logger.warning("[WARN] Outcome not saved: %s", e2)
            return None
        p = fallback

    logger.debug("Outcome flushed to %s", str(p))
    return str(p)
