"""SQL analysis and safety gate applied before any statement reaches a database.

Statements are parsed with sqlglot and classified by their syntax tree rather
than by keyword scanning, so a column called ``updated_at`` is not mistaken
for an UPDATE. A textual check for stacked destructive statements runs on top
of the tree-based classification.
"""

import logging
import re
from dataclasses import dataclass, field

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, SqlglotError

logger = logging.getLogger(__name__)

DEFAULT_ROW_LIMIT = 1000

# Statement kinds that modify data or schema.
WRITE_OPERATIONS = frozenset(
    {"insert", "update", "delete", "merge", "create", "drop", "alter", "truncate"}
)

# sqlglot node keys that differ from the statement keyword.
_KIND_ALIASES = {
    "union": "select",
    "intersect": "select",
    "except": "select",
    "subquery": "select",
    "altertable": "alter",
    "truncatetable": "truncate",
}

_STACKED_DANGER_PATTERN = re.compile(
    r";\s*(DROP|TRUNCATE|DELETE\s+FROM\s+\w+\s*;?\s*$)",
    re.IGNORECASE,
)
_LIMIT_PATTERN = re.compile(r"LIMIT\s+\d+", re.IGNORECASE)
_SELECT_PATTERN = re.compile(r"^SELECT", re.IGNORECASE)


@dataclass
class SQLAnalysis:
    """What the parser learned about a piece of SQL text.

    Attributes:
        is_valid: Whether the text parsed.
        is_read_only: False if any statement is a write operation.
        statement_type: Lowercase kind of the last statement analyzed.
        referenced_tables: Table names in first-seen order, duplicates kept.
        errors: Parse errors; empty when ``is_valid`` is True.
        warnings: Non-fatal observations such as stacked statements.
    """

    is_valid: bool = False
    is_read_only: bool = True
    statement_type: str = "unknown"
    referenced_tables: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SafetyCheck:
    """Verdict of :meth:`SQLValidator.validate_safe`."""

    safe: bool
    reason: str | None = None


class SQLValidator:
    """Parses, classifies and gates SQL text.

    All methods are pure functions of their arguments; a single instance can
    be shared freely.
    """

    def __init__(self, dialect: str | None = None) -> None:
        """Create a validator.

        Args:
            dialect: Optional sqlglot dialect name (e.g. ``"postgres"``,
                ``"tsql"``). The generic dialect is used when omitted.
        """
        self._dialect = dialect

    def analyze(self, sql: str) -> SQLAnalysis:
        """Parse ``sql`` and classify it. Never raises.

        Args:
            sql: Arbitrary SQL text, possibly several statements.

        Returns:
            The analysis. Parse failures are reported through ``errors``.
        """
        result = SQLAnalysis()

        try:
            statements = [
                stmt
                for stmt in sqlglot.parse(sql, read=self._dialect)
                if stmt is not None
            ]
        except SqlglotError as e:
            result.errors.append(f"Parse error: {_describe_parse_error(e)}")
            return result

        if not statements:
            result.errors.append("Parse error: no SQL statement found")
            return result

        result.is_valid = True
        if len(statements) > 1:
            result.warnings.append("Multiple statements detected")

        for stmt in statements:
            self._analyze_statement(stmt, result)

        return result

    def validate_safe(self, sql: str, read_only_mode: bool = True) -> SafetyCheck:
        """Decide whether ``sql`` may be executed. Never raises.

        Args:
            sql: The SQL text to check.
            read_only_mode: When True, any write operation is rejected.

        Returns:
            A SafetyCheck; ``reason`` explains a rejection.
        """
        analysis = self.analyze(sql)

        if not analysis.is_valid:
            return SafetyCheck(safe=False, reason="; ".join(analysis.errors))

        if read_only_mode and not analysis.is_read_only:
            return SafetyCheck(
                safe=False, reason="Write operations not allowed in read-only mode"
            )

        if _STACKED_DANGER_PATTERN.search(sql):
            logger.warning("Rejected stacked destructive statement")
            return SafetyCheck(
                safe=False, reason="Potentially dangerous operation detected"
            )

        return SafetyCheck(safe=True)

    def add_limit(self, sql: str, limit: int = DEFAULT_ROW_LIMIT) -> str:
        """Append ``LIMIT <limit>`` to a SELECT that has no LIMIT clause.

        Text that already contains a LIMIT, or that is not a SELECT, is
        returned unchanged. A single trailing semicolon is dropped before
        the clause is appended.
        """
        trimmed = sql.strip()

        if _LIMIT_PATTERN.search(trimmed):
            return sql

        if _SELECT_PATTERN.match(trimmed):
            if trimmed.endswith(";"):
                trimmed = trimmed[:-1].rstrip()
            return f"{trimmed} LIMIT {limit}"

        return sql

    def _analyze_statement(self, stmt: exp.Expression, result: SQLAnalysis) -> None:
        """Fold one parsed statement into ``result``.

        The statement type is overwritten, so the last statement of a batch
        determines it.
        """
        result.statement_type = _statement_kind(stmt)

        if result.statement_type in WRITE_OPERATIONS or _modifies_data(stmt):
            result.is_read_only = False

        _collect_tables(stmt, result.referenced_tables)


def _statement_kind(stmt: exp.Expression) -> str:
    if isinstance(stmt, exp.Command):
        # Statements sqlglot does not model, e.g. TRUNCATE on older releases.
        return stmt.name.split()[0].lower() if stmt.name else "unknown"
    return _KIND_ALIASES.get(stmt.key, stmt.key)


def _modifies_data(stmt: exp.Expression) -> bool:
    # Data-modifying statements nested in CTEs, or MERGE
    return stmt.find(exp.Insert, exp.Update, exp.Delete, exp.Merge) is not None


def _collect_tables(stmt: exp.Expression, tables: list[str]) -> None:
    if isinstance(stmt, (exp.Union, exp.Intersect, exp.Except)):
        _collect_tables(stmt.left, tables)
        _collect_tables(stmt.right, tables)
        return

    # FROM clause and its joins
    from_clause = next(
        (arg for arg in stmt.args.values() if isinstance(arg, exp.From)), None
    )
    if from_clause is not None:
        _append_source(from_clause.this, tables)
    for join in stmt.args.get("joins") or []:
        _append_source(join.this, tables)

    # INSERT target, or the table an UPDATE/DELETE/DDL statement acts on
    _append_table(stmt.args.get("this"), tables)

    if isinstance(stmt, exp.TruncateTable):
        for target in stmt.expressions:
            _append_table(target, tables)

    # DROP keeps its targets in "tables" on newer sqlglot releases
    if isinstance(stmt, exp.Drop) and not isinstance(stmt.args.get("this"), exp.Table):
        for target in stmt.args.get("tables") or []:
            _append_table(target, tables)


def _append_source(node, tables: list[str]) -> None:
    if isinstance(node, exp.Subquery):
        _collect_tables(node.this, tables)
    else:
        _append_table(node, tables)


def _append_table(node, tables: list[str]) -> None:
    if isinstance(node, exp.Schema):
        node = node.this
    if isinstance(node, exp.Table) and node.name:
        tables.append(node.name)


def _describe_parse_error(error: SqlglotError) -> str:
    if isinstance(error, ParseError) and error.errors:
        first = error.errors[0]
        description = first.get("description") or str(error)
        line, col = first.get("line"), first.get("col")
        if line is not None and col is not None:
            return f"{description} (line {line}, col {col})"
        return description
    return str(error)
