"""Schema diffing between the live database and the declared tables.

Only the `CREATE TABLE` shape that `Schema.to_sql` produces (and the way
SQLite echoes it back from `sqlite_master`) needs to be understood, so the
parser below is a small recursive-descent parser over that grammar rather than
a general SQL parser:

    create     := CREATE [TEMP] TABLE [IF NOT EXISTS] name "(" definition ("," definition)* ")"
    definition := table_constraint | column
    column     := name [type] constraint*
    constraint := [CONSTRAINT name] ( PRIMARY KEY [ASC|DESC] [AUTOINCREMENT]
                | NOT NULL | NULL | UNIQUE | DEFAULT value | CHECK group
                | COLLATE name | REFERENCES name [group] (ON word word+)* )
"""

import re
from typing import Iterable, NamedTuple

from sqlitebruv.types import Migration, ParsedColumn, TableDDL

TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
    | (?P<comment>--[^\n]*|/\*.*?\*/)
    | (?P<string>'(?:[^']|'')*')
    | (?P<quoted>"(?:[^"]|"")*"|`(?:[^`]|``)*`|\[[^\]]*\])
    | (?P<number>\d+(?:\.\d*)?(?:[eE][+-]?\d+)?(?![A-Za-z0-9_$.]))
    | (?P<word>[A-Za-z0-9_$.]+)
    | (?P<punct>[(),])
    | (?P<op>.)
    """,
    re.VERBOSE | re.DOTALL,
)

TABLE_CONSTRAINTS = {"CONSTRAINT", "PRIMARY", "UNIQUE", "CHECK", "FOREIGN"}
COLUMN_CONSTRAINTS = {
    "CONSTRAINT",
    "PRIMARY",
    "NOT",
    "NULL",
    "UNIQUE",
    "DEFAULT",
    "CHECK",
    "COLLATE",
    "REFERENCES",
}


class Token(NamedTuple):
    kind: str
    value: str
    start: int
    end: int

    @property
    def keyword(self) -> str:
        return self.value.upper() if self.kind == "word" else ""


class ParsedTable(NamedTuple):
    name: str
    columns: dict[str, ParsedColumn]
    body: str


def tokenize(sql: str) -> list[Token]:
    tokens = []
    for match in TOKEN_RE.finditer(sql):
        kind = match.lastgroup
        if kind in ("space", "comment"):
            continue
        tokens.append(Token(kind, match.group(), match.start(), match.end()))
    return tokens


class DDLParser:
    def __init__(self, sql: str):
        self.sql = sql
        self.tokens = tokenize(sql)
        self.pos = 0

    def error(self, expected: str) -> ValueError:
        if self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            found = f"'{token.value}' at offset {token.start}"
        else:
            found = "end of statement"
        return ValueError(f"Expected {expected}, found {found}: {self.sql}")

    def peek(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            raise self.error("more input")
        self.pos += 1
        return token

    def accept(self, value: str) -> Token | None:
        token = self.peek()
        if token is not None and (token.keyword or token.value) == value:
            self.pos += 1
            return token
        return None

    def expect(self, value: str) -> Token:
        token = self.accept(value)
        if token is None:
            raise self.error(f"'{value}'")
        return token

    def at(self, *values: str) -> bool:
        token = self.peek()
        return token is not None and (token.keyword or token.value) in values

    def identifier(self) -> str:
        token = self.peek()
        if token is None or token.kind not in ("word", "quoted"):
            raise self.error("an identifier")
        self.pos += 1
        if token.kind == "quoted":
            return token.value[1:-1]
        # schema-qualified names keep only the table part
        return token.value.rsplit(".", 1)[-1]

    def group(self) -> Token:
        """Consume a balanced parenthesised group and return its span as one token"""
        start = self.expect("(")
        depth = 1
        while depth:
            token = self.next()
            if token.value == "(":
                depth += 1
            elif token.value == ")":
                depth -= 1
        end = self.tokens[self.pos - 1]
        return Token("group", self.sql[start.start : end.end], start.start, end.end)

    def parse(self) -> ParsedTable:
        self.expect("CREATE")
        if not self.accept("TEMP"):
            self.accept("TEMPORARY")
        self.expect("TABLE")
        if self.accept("IF"):
            self.expect("NOT")
            self.expect("EXISTS")
        name = self.identifier()
        if self.accept("."):
            name = self.identifier()

        open_paren = self.expect("(")
        columns: dict[str, ParsedColumn] = {}
        while True:
            if self.at(*TABLE_CONSTRAINTS):
                self.skip_table_constraint()
            else:
                col_name, column = self.column()
                columns[col_name] = column
            if self.accept(","):
                continue
            close_paren = self.expect(")")
            break

        body = self.sql[open_paren.end : close_paren.start].strip()
        return ParsedTable(name, columns, body)

    def skip_table_constraint(self):
        while not self.at(",", ")"):
            if self.at("("):
                self.group()
            else:
                self.next()

    def column(self) -> tuple[str, ParsedColumn]:
        name = self.identifier()

        type_words = []
        while (token := self.peek()) is not None and token.kind == "word":
            if token.keyword in COLUMN_CONSTRAINTS:
                break
            type_words.append(self.next().value)
        col_type = " ".join(type_words)
        if type_words and self.at("("):
            col_type += self.group().value

        constraints = []
        while not self.at(",", ")"):
            constraints.append(self.constraint())

        return name, ParsedColumn(type=col_type, constraints=" ".join(constraints))

    def constraint(self) -> str:
        token = self.peek()
        if token is None:
            raise self.error("a column constraint")
        start = token.start
        keyword = token.keyword

        if keyword == "CONSTRAINT":
            self.next()
            self.identifier()
            return self.sql[start : self.tokens[self.pos - 1].end] + " " + self.constraint()

        self.next()
        if keyword == "PRIMARY":
            self.expect("KEY")
            if not self.accept("ASC"):
                self.accept("DESC")
            self.accept("AUTOINCREMENT")
        elif keyword == "NOT":
            self.expect("NULL")
        elif keyword in ("NULL", "UNIQUE"):
            pass
        elif keyword == "DEFAULT":
            self.default_value()
        elif keyword == "CHECK":
            self.group()
        elif keyword == "COLLATE":
            self.identifier()
        elif keyword == "REFERENCES":
            self.identifier()
            if self.at("("):
                self.group()
            while self.accept("ON"):
                self.next()
                self.next()
                while self.at("NULL", "DEFAULT", "ACTION"):
                    self.next()
        else:
            self.pos -= 1
            raise self.error("a column constraint")

        return self.sql[start : self.tokens[self.pos - 1].end]

    def default_value(self):
        if self.at("("):
            self.group()
            return
        if self.at("-", "+"):
            self.next()
        token = self.next()
        if token.kind not in ("number", "word", "string"):
            self.pos -= 1
            raise self.error("a default value")


def parse_table(sql: str) -> ParsedTable:
    return DDLParser(sql).parse()


def parse_columns(sql: str) -> dict[str, ParsedColumn]:
    return parse_table(sql).columns


def _definition(column: ParsedColumn) -> str:
    return " ".join(part for part in (column["type"], column["constraints"]) if part)


def generate_migration(
    current_schema: Iterable[TableDDL], target_schema: Iterable[TableDDL]
) -> Migration:
    """Compute the statements that take the live schema to the declared one, and back"""
    current_tables = {table["name"]: table["sql"] for table in current_schema}
    target_tables = {table["name"]: table["sql"] for table in target_schema}
    if not target_tables:
        return Migration(up="", down="")

    up: list[str] = []
    down: list[str] = []

    for table_name, current_sql in current_tables.items():
        current = parse_table(current_sql)
        if table_name not in target_tables:
            up.append(f"DROP TABLE {table_name};")
            down.append(f"CREATE TABLE {table_name} ({current.body});")
            continue

        target = parse_table(target_tables[table_name])
        for col_name, col in current.columns.items():
            target_col = target.columns.get(col_name)
            if target_col is None:
                up.append(f"ALTER TABLE {table_name} DROP COLUMN {col_name};")
                down.append(f"ALTER TABLE {table_name} ADD COLUMN {col_name} {_definition(col)};")
            elif target_col["type"].upper() != col["type"].upper():
                up.append(
                    f"ALTER TABLE {table_name} ALTER COLUMN {col_name} TYPE "
                    f"{_definition(target_col)};"
                )
                down.append(
                    f"ALTER TABLE {table_name} ALTER COLUMN {col_name} TYPE "
                    f"{_definition(col)};"
                )

        for col_name, col in target.columns.items():
            if col_name not in current.columns:
                up.append(f"ALTER TABLE {table_name} ADD COLUMN {col_name} {_definition(col)};")
                down.append(f"ALTER TABLE {table_name} DROP COLUMN {col_name};")

    for table_name, target_sql in target_tables.items():
        if table_name not in current_tables:
            target = parse_table(target_sql)
            up.append(f"CREATE TABLE {table_name} ({target.body});")
            down.append(f"DROP TABLE {table_name};")

    return Migration(
        up="".join(f"{statement}\n" for statement in up),
        down="".join(f"{statement}\n" for statement in down),
    )
