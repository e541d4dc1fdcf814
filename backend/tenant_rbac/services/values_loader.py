"""Values-file loading.

A values file holds either one tenant at the top level or several under a
`tenants:` list::

    tenant: team1
    namespaces:
      install: [ns-1, ns-2]
      exists: [ns-3]
    groups:
      - name: team1-sg
        id: 48102a86-...
        bindings:
          - role: view
            scope: cluster
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from ..exceptions import ValuesLoadError
from ..schemas.values import TenantConfig, values_path

logger = structlog.get_logger(__name__)


def _parse_tenant(data: Any, location: str) -> TenantConfig:
    if not isinstance(data, dict):
        raise ValuesLoadError(f"{location} must be a mapping", details={"location": location})
    try:
        return TenantConfig.model_validate(data)
    except ValidationError as exc:
        errors = [
            {"path": values_path(err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        raise ValuesLoadError(f"{location} has fields of the wrong type", details={"location": location, "errors": errors}) from exc


def parse_values(data: Any) -> list[TenantConfig]:
    """Turn an already-decoded values document into tenant configs."""
    if not isinstance(data, dict):
        raise ValuesLoadError("values document must be a mapping")
    if "tenants" in data:
        tenants = data.get("tenants") or []
        if not isinstance(tenants, list):
            raise ValuesLoadError("'tenants' must be a list")
        return [_parse_tenant(item, f"tenants[{index}]") for index, item in enumerate(tenants)]
    return [_parse_tenant(data, "values")]


def load_values(text: str) -> list[TenantConfig]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValuesLoadError("values file is not valid YAML", details={"error": str(exc)}) from exc
    configs = parse_values(data or {})
    logger.debug("values.loaded", tenants=[c.tenant for c in configs])
    return configs


def load_values_file(path: str | Path) -> list[TenantConfig]:
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValuesLoadError(f"cannot read values file {file_path}", details={"error": str(exc)}) from exc
    return load_values(text)
