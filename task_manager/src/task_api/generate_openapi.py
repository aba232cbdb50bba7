"""
Utility script to generate and write the OpenAPI schema for the task API.

The schema is built from a freshly created application (the store is never
opened) and written to interfaces/openapi.json so that API clients and
documentation tools can consume a stable schema without running the server.

Usage:
    python -m src.task_api.generate_openapi
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional

from .main import create_app, openapi_tags
from .repositories import InMemoryTaskStore

logger = logging.getLogger(__name__)


def _default_output_path() -> str:
    # <container_root>/interfaces/openapi.json, where src/ sits under container_root
    script_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    container_root = os.path.dirname(script_dir)
    return os.path.join(container_root, "interfaces", "openapi.json")


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Make sure every tag in openapi_tags is listed in the schema's tags
    metadata, without overriding tags that are already there.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


# PUBLIC_INTERFACE
def build_schema() -> Dict[str, Any]:
    """Return the OpenAPI schema of the application as a dict."""
    schema = create_app(store=InMemoryTaskStore()).openapi()
    _ensure_tags(schema)
    return schema


# PUBLIC_INTERFACE
def generate_openapi(out_path: Optional[str] = None) -> str:
    """Write the OpenAPI schema file and return the written file path."""
    path = out_path or _default_output_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(build_schema(), f, indent=2, ensure_ascii=False)
    logger.info("Wrote OpenAPI schema to %s", path)
    return path


if __name__ == "__main__":
    print(f"Wrote OpenAPI schema to: {generate_openapi()}")
