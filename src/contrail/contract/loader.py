from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
import yaml

from contrail.errors import ContractLoadError

logger = structlog.get_logger()


def parse_contract(text: str, source: str = "<string>", fmt: str = "yaml") -> dict[str, Any]:
    """Parse contract text (YAML or JSON). Anything but a mapping is fatal."""
    try:
        if fmt == "json":
            doc = json.loads(text)
        else:
            doc = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ContractLoadError(source, f"parse error: {e}") from e

    if not isinstance(doc, dict):
        raise ContractLoadError(source, f"expected a mapping at top level, got {type(doc).__name__}")
    return doc


def load_contract(path: str | Path) -> dict[str, Any]:
    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ContractLoadError(str(p), e.strerror or str(e)) from e

    fmt = "json" if p.suffix.lower() == ".json" else "yaml"
    doc = parse_contract(text, source=str(p), fmt=fmt)
    logger.debug("contract_loaded", path=str(p), format=fmt, paths=len(doc.get("paths") or {}))
    return doc
