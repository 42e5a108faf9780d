"""
Migration Reader: column types from schema-builder migrations.

Reads `Schema::create()` / `Schema::table()` blueprints in
database/migrations and replays them in filename order to recover the
backing-storage columns of each table.
"""

from __future__ import annotations

import logging
from pathlib import Path

from tree_sitter import Node

from routescribe.core.errors import SourceParseError
from routescribe.core.syntax import (
    INSTANCE_CALL_KINDS,
    NodeKind,
    basename,
    call_arguments,
    call_name,
    find_kind,
    is_closure,
    kind_of,
    node_text,
    receiver,
    same_node,
    static_scope,
    string_list,
    string_value,
)
from routescribe.core.unit import SourceUnit
from routescribe.models.schema_models import ColumnInfo

logger = logging.getLogger("routescribe.migrations")

# Blueprint method → column type
COLUMN_TYPES: dict[str, str] = {
    "id": "bigint",
    "bigincrements": "bigint",
    "increments": "integer",
    "integer": "integer",
    "tinyinteger": "integer",
    "smallinteger": "integer",
    "mediuminteger": "integer",
    "biginteger": "bigint",
    "unsignedinteger": "integer",
    "unsignedtinyinteger": "integer",
    "unsignedsmallinteger": "integer",
    "unsignedmediuminteger": "integer",
    "unsignedbiginteger": "bigint",
    "foreignid": "bigint",
    "year": "integer",
    "string": "string",
    "char": "string",
    "text": "text",
    "tinytext": "text",
    "mediumtext": "text",
    "longtext": "text",
    "boolean": "boolean",
    "decimal": "decimal",
    "unsigneddecimal": "decimal",
    "float": "float",
    "double": "float",
    "date": "date",
    "datetime": "datetime",
    "datetimetz": "datetime",
    "timestamp": "datetime",
    "timestamptz": "datetime",
    "time": "time",
    "timetz": "time",
    "json": "json",
    "jsonb": "json",
    "uuid": "string",
    "ulid": "string",
    "foreignuuid": "string",
    "foreignulid": "string",
    "enum": "string",
    "set": "string",
    "ipaddress": "string",
    "macaddress": "string",
    "binary": "string",
}

# Blueprint helpers that add several fixed columns
COMPOSITE_COLUMNS: dict[str, list[tuple[str, str]]] = {
    "timestamps": [("created_at", "datetime"), ("updated_at", "datetime")],
    "timestampstz": [("created_at", "datetime"), ("updated_at", "datetime")],
    "nullabletimestamps": [("created_at", "datetime"), ("updated_at", "datetime")],
    "softdeletes": [("deleted_at", "datetime")],
    "softdeletestz": [("deleted_at", "datetime")],
    "remembertoken": [("remember_token", "string")],
}

_DROP_METHODS = frozenset({"dropcolumn", "dropcolumns"})


def _modifiers(call: Node) -> set[str]:
    """Names of calls chained onto a column definition: ->nullable()->unique()."""
    names: set[str] = set()
    current = call
    parent = current.parent
    while parent is not None and kind_of(parent) in INSTANCE_CALL_KINDS and same_node(receiver(parent), current):
        names.add(call_name(parent).lower())
        current = parent
        parent = current.parent
    return names


def _apply_blueprint(closure: Node, columns: dict[str, ColumnInfo]) -> None:
    for call in find_kind(closure, *INSTANCE_CALL_KINDS):
        obj = receiver(call)
        if kind_of(obj) is not NodeKind.VARIABLE:
            continue
        method = call_name(call).lower()
        args = call_arguments(call)
        first = string_value(args[0]) if args else None

        if method in _DROP_METHODS:
            for name in (string_list(args[0]) if args else []):
                columns.pop(name, None)
            continue
        if method in COMPOSITE_COLUMNS:
            for name, column_type in COMPOSITE_COLUMNS[method]:
                columns[name] = ColumnInfo(type=column_type, nullable=method.startswith("nullable") or name == "deleted_at")
            continue
        if method in ("morphs", "nullablemorphs", "uuidmorphs") and first:
            id_type = "string" if method == "uuidmorphs" else "bigint"
            columns[f"{first}_id"] = ColumnInfo(type=id_type, nullable=method.startswith("nullable"))
            columns[f"{first}_type"] = ColumnInfo(type="string", nullable=method.startswith("nullable"))
            continue
        if method == "foreignidfor" and args:
            related = basename(node_text(args[0]).replace("::class", ""))
            name = first or f"{related.lower()}_id"
            columns[name] = ColumnInfo(type="bigint", nullable="nullable" in _modifiers(call))
            continue
        column_type = COLUMN_TYPES.get(method)
        if column_type is None:
            continue
        name = first or ("id" if method in ("id", "bigincrements", "increments") else None)
        if name:
            columns[name] = ColumnInfo(type=column_type, nullable="nullable" in _modifiers(call))


def _in_down_method(node: Node) -> bool:
    parent = node.parent
    while parent is not None:
        if kind_of(parent) is NodeKind.METHOD:
            return node_text(parent.child_by_field_name("name")).lower() == "down"
        parent = parent.parent
    return False


def read_migration(unit: SourceUnit, tables: dict[str, dict[str, ColumnInfo]]) -> None:
    """Replay one migration file's blueprints (outside down()) into tables."""
    # Anonymous migration classes are not indexed, so scan the whole file
    for call in find_kind(unit.root, NodeKind.STATIC_CALL):
        if _in_down_method(call):
            continue
        if basename(node_text(static_scope(call))).lower() != "schema":
            continue
        method = call_name(call).lower()
        args = call_arguments(call)
        if method not in ("create", "table") or len(args) < 2:
            continue
        table = string_value(args[0])
        if not table or not is_closure(args[1]):
            continue
        columns = tables.setdefault(table, {})
        if method == "create":
            columns.clear()
        _apply_blueprint(args[1], columns)


def read_migrations(root: str | Path) -> dict[str, dict[str, ColumnInfo]]:
    """table → column → ColumnInfo for every migration under root/database/migrations."""
    directory = Path(root) / "database" / "migrations"
    tables: dict[str, dict[str, ColumnInfo]] = {}
    if not directory.is_dir():
        return tables
    for path in sorted(directory.glob("*.php")):
        try:
            unit = SourceUnit.parse(path.read_text(encoding="utf-8", errors="replace"), str(path))
            read_migration(unit, tables)
        except (OSError, SourceParseError) as e:
            logger.warning(f"Skipping migration {path.name}: {e}")
    logger.info(f"Read columns for {len(tables)} tables from {directory}")
    return tables
