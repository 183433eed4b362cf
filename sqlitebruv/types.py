from typing import Any, Literal, NotRequired, TypedDict, Union

Query = str

Param = Union[str, int, float, bool, None]

ColumnType = Literal["INTEGER", "REAL", "TEXT", "DATETIME"]
RelationType = Literal["ONE", "MANY"]
Direction = Literal["ASC", "DESC"]

# one: single row, all: every row, run: no result rows
FetchMode = Literal["one", "all", "run"]

Action = Literal["get", "getOne", "insert", "update", "delete", "count"]

Row = dict[str, Any]


class RunResult(TypedDict):
    changes: int | None


class Migration(TypedDict):
    up: str
    down: str


class ParsedColumn(TypedDict):
    type: str
    constraints: str


class TableDDL(TypedDict):
    name: str
    sql: str


class OrderBy(TypedDict):
    column: str
    direction: Direction


class JsonCondition(TypedDict):
    condition: str
    params: NotRequired[list[Param]]


# "from" is a keyword, so the request shape uses the functional syntax
JsonQuery = TypedDict(
    "JsonQuery",
    {
        "from": str,
        "action": Action,
        "select": NotRequired[list[str]],
        "where": NotRequired[list[JsonCondition]],
        "andWhere": NotRequired[list[JsonCondition]],
        "orWhere": NotRequired[list[JsonCondition]],
        "orderBy": NotRequired[OrderBy],
        "limit": NotRequired[int],
        "offset": NotRequired[int],
        "cacheAs": NotRequired[str],
        "invalidateCache": NotRequired[str],
        "data": NotRequired[dict[str, Param]],
    },
)
