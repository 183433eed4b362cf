from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, get_args

from sqlitebruv.builder import QueryBuilder
from sqlitebruv.errors import ValidationError
from sqlitebruv.types import Action
from sqlitebruv.validation import validate_identifier

if TYPE_CHECKING:
    from sqlitebruv.client import SqliteBruv

ACTIONS = set(get_args(Action))
CONDITION_KEYS = (("where", "where"), ("andWhere", "and_where"), ("orWhere", "or_where"))


def _require_str(query: Mapping[str, Any], key: str, required: bool = False) -> str | None:
    value = query.get(key)
    if value is None and not required:
        return None
    if not isinstance(value, str) or not value:
        raise ValidationError(f"'{key}' must be a non-empty string")
    return value


def _apply_conditions(builder: QueryBuilder, query: Mapping[str, Any]) -> QueryBuilder:
    for key, method in CONDITION_KEYS:
        entries = query.get(key)
        if entries is None:
            continue
        if not isinstance(entries, list):
            raise ValidationError(f"'{key}' must be a list of {{condition, params}} objects")
        for entry in entries:
            if not isinstance(entry, Mapping) or "condition" not in entry:
                raise ValidationError(f"Each '{key}' entry requires a 'condition'")
            params = entry.get("params") or []
            if not isinstance(params, list):
                raise ValidationError(f"'{key}' params must be a list")
            builder = getattr(builder, method)(entry["condition"], *params)
    return builder


def build_json_query(client: SqliteBruv, query: Mapping[str, Any]) -> QueryBuilder:
    """Validate a request and turn it into a builder, without touching the database"""
    if not isinstance(query, Mapping):
        raise ValidationError("Query must be a JSON object")

    table = _require_str(query, "from", required=True)
    validate_identifier(table, "table")
    action = query.get("action")
    if action not in ACTIONS:
        raise ValidationError(
            f"Invalid action: {action!r}. Allowed actions: {', '.join(sorted(ACTIONS))}"
        )

    builder = client.from_(table)

    if (select := query.get("select")) is not None:
        if not isinstance(select, list) or not all(isinstance(c, str) for c in select):
            raise ValidationError("'select' must be a list of column names")
        for column in select:
            if column != "*":
                validate_identifier(column)
        builder = builder.select(*select)

    builder = _apply_conditions(builder, query)

    if (order_by := query.get("orderBy")) is not None:
        if not isinstance(order_by, Mapping) or not isinstance(order_by.get("column"), str):
            raise ValidationError("'orderBy' requires a 'column'")
        validate_identifier(order_by["column"])
        builder = builder.order_by(order_by["column"], order_by.get("direction", "ASC"))

    if query.get("limit") is not None:
        builder = builder.limit(query["limit"])
    if query.get("offset") is not None:
        builder = builder.offset(query["offset"])
    if (cache_as := _require_str(query, "cacheAs")) is not None:
        builder = builder.cache_as(cache_as)
    _require_str(query, "invalidateCache")

    if action in ("insert", "update") and not isinstance(query.get("data"), Mapping):
        raise ValidationError(f"'data' is required for {action}")
    if action in ("update", "delete") and not query.get("where"):
        raise ValidationError(f"At least one 'where' condition is required for {action}")

    return builder


async def execute_json_query(client: SqliteBruv, query: Mapping[str, Any]) -> Any:
    builder = build_json_query(client, query)

    if invalidate := query.get("invalidateCache"):
        client.invalidate_cache(invalidate)

    action = query["action"]
    if action == "get":
        return await builder.get()
    if action == "getOne":
        return await builder.get_one()
    if action == "insert":
        return await builder.insert(query["data"])
    if action == "update":
        return await builder.update(query["data"])
    if action == "delete":
        return await builder.delete()
    return await builder.count()
