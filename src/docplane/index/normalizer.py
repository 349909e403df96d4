"""Schema normalizer: raw documentation tree -> flat item catalog.

The raw tree is rustdoc's JSON output, an externally-defined and versioned
format. Only three sections are required:

- ``index``: item id -> item record (``name``, ``docs``, ``kind``, ``inner``)
- ``paths``: item id -> ``{"path": [segment, ...]}``
- ``root``:  id of the crate root item

Older format versions carry ``kind`` on the record and ``inner.is_stripped``;
newer ones drop ``kind`` and nest the payload under a single ``inner`` key
(``{"inner": {"module": {"is_stripped": ...}}}``). Both are accepted.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from docplane.config.constants import UNKNOWN_CRATE
from docplane.core.errors import SchemaError
from docplane.index.models import CrateCatalog, Item, ItemKind, build_full_path

log = structlog.get_logger(__name__)

_UNKNOWN_KIND = "unknown"


def _require_mapping(tree: Mapping[str, Any], key: str, project: str | None) -> Mapping[str, Any]:
    if key not in tree or tree[key] is None:
        raise SchemaError.missing_section(key, project)
    value = tree[key]
    if not isinstance(value, Mapping):
        raise SchemaError.malformed(f"'{key}' must be an object", project)
    return value


def _raw_kind(record: Mapping[str, Any]) -> str:
    kind = record.get("kind")
    if isinstance(kind, str) and kind:
        return kind
    inner = record.get("inner")
    if isinstance(inner, Mapping) and len(inner) == 1:
        (only_key,) = inner.keys()
        if isinstance(only_key, str):
            return only_key
    return _UNKNOWN_KIND


def _is_stripped(record: Mapping[str, Any]) -> bool:
    inner = record.get("inner")
    if not isinstance(inner, Mapping):
        return False
    if inner.get("is_stripped") is True:
        return True
    module = inner.get("module")
    return isinstance(module, Mapping) and module.get("is_stripped") is True


def _module_path(paths: Mapping[str, Any], item_id: str) -> tuple[str, ...]:
    entry = paths.get(item_id)
    if not isinstance(entry, Mapping):
        return ()
    raw = entry.get("path")
    if not isinstance(raw, list):
        return ()
    return tuple(seg for seg in raw if isinstance(seg, str))


def normalize(
    tree: Mapping[str, Any],
    *,
    skip_stripped: bool = False,
    project: str | None = None,
) -> CrateCatalog:
    """Parse a raw documentation tree into a CrateCatalog.

    Args:
        tree: Decoded JSON documentation tree.
        skip_stripped: Drop items carrying the stripped marker.
        project: Project identifier, only used for error context.

    Raises:
        SchemaError: If ``index``, ``paths`` or ``root`` is absent or malformed,
            or the root id is not in the index.
    """
    if not isinstance(tree, Mapping):
        raise SchemaError.malformed("documentation tree must be an object", project)

    index = _require_mapping(tree, "index", project)
    paths = _require_mapping(tree, "paths", project)

    root_val = tree.get("root")
    if root_val is None:
        raise SchemaError.missing_section("root", project)
    # Some format versions encode ids as integers
    if isinstance(root_val, bool) or not isinstance(root_val, (str, int)):
        raise SchemaError.malformed("'root' must be an item id", project)
    root_id = str(root_val)

    root_item = index.get(root_id)
    if not isinstance(root_item, Mapping):
        raise SchemaError.malformed(f"root item '{root_id}' not found in index", project)

    root_name = root_item.get("name")
    crate_name = root_name if isinstance(root_name, str) and root_name else UNKNOWN_CRATE

    format_version = tree.get("format_version")
    if not isinstance(format_version, int) or isinstance(format_version, bool):
        format_version = None

    items: dict[str, Item] = {}
    skipped_unnamed = 0
    skipped_stripped = 0

    for item_id, record in index.items():
        if not isinstance(record, Mapping):
            skipped_unnamed += 1
            continue

        name = record.get("name")
        if not isinstance(name, str) or not name:
            skipped_unnamed += 1
            continue

        stripped = _is_stripped(record)
        if stripped and skip_stripped:
            skipped_stripped += 1
            continue

        raw_kind = _raw_kind(record)
        module_path = _module_path(paths, str(item_id))
        full_path = build_full_path(crate_name, module_path, name, raw_kind)

        docs = record.get("docs")
        description = docs if isinstance(docs, str) else None

        if full_path in items:
            log.debug("normalize.duplicate_path", full_path=full_path, item_id=str(item_id))

        items[full_path] = Item(
            id=str(item_id),
            crate_name=crate_name,
            name=name,
            module_path=module_path,
            full_path=full_path,
            item_kind=ItemKind.from_raw(raw_kind),
            description=description,
            raw_kind=raw_kind,
            is_stripped=stripped,
        )

    log.info(
        "normalize.complete",
        crate=crate_name,
        items=len(items),
        skipped_unnamed=skipped_unnamed,
        skipped_stripped=skipped_stripped,
        format_version=format_version,
    )

    return CrateCatalog(
        crate_name=crate_name,
        items=items,
        format_version=format_version,
        skipped_unnamed=skipped_unnamed,
        skipped_stripped=skipped_stripped,
    )
