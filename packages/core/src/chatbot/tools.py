"""Tool catalog exposed to the model and the dispatch boundary that runs it.

The catalog is closed: every tool is a member of :class:`ToolName`, bound to
its handler once when the registry is built, and looked up in a read-only
mapping afterwards. Handler failures never escape :meth:`ToolRegistry.execute_tool`;
they come back as a :class:`ToolOutcome` tagged with an :class:`ErrorKind`.
"""

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from chatbot.errors import (
    ErrorKind,
    SafetyViolation,
    ToolError,
    ToolExecutionError,
    error_for_kind,
)
from database.DatabaseProvider import DatabaseProvider
from database.metadata import DatabaseMetadata
from database.semantic import find_table, generate_tables_list
from database.SQLValidator import DEFAULT_ROW_LIMIT, SQLValidator

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Any]


class ToolName(str, Enum):
    LIST_TABLES = "list_tables"
    DESCRIBE_TABLE = "describe_table"
    GENERATE_SQL = "generate_sql"
    EXPLAIN_SQL = "explain_sql"
    RUN_SQL = "run_sql"


@dataclass(frozen=True)
class Tool:
    """A named capability with the JSON schema of its parameters."""

    name: ToolName
    description: str
    parameters: dict[str, Any]
    handler: Handler

    def to_schema(self) -> dict[str, Any]:
        """Return the ``{name, description, parameters}`` form sent to the model."""
        return {
            "name": self.name.value,
            "description": self.description,
            "parameters": self.parameters,
        }


@dataclass(frozen=True)
class ToolOutcome:
    """Result of one dispatch: either a value or a tagged error."""

    tool: str
    value: Any = None
    error_kind: ErrorKind | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def failure(cls, tool: str, kind: ErrorKind, message: str) -> "ToolOutcome":
        return cls(tool=tool, error_kind=kind, error=message)

    def unwrap(self) -> Any:
        """Return the value, or raise the exception matching the error kind."""
        if self.error_kind is not None:
            raise error_for_kind(self.error_kind, self.error or "")
        return self.value

    def to_content(self) -> str:
        """Serialize for a tool-role message."""
        if self.error_kind is not None:
            return json.dumps({"error": self.error})
        return json.dumps(self.value, indent=2, default=str)


def _object_schema(properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


class ToolRegistry:
    """Database tools available to the model for one session.

    Args:
        provider: Connected provider used when the cached schema cannot answer.
        metadata: Scanned schema served to ``list_tables``/``describe_table``.
        validator: SQL gate; a default validator is created when omitted.
        read_only_mode: Whether ``run_sql`` rejects write operations.
    """

    def __init__(
        self,
        provider: DatabaseProvider,
        metadata: DatabaseMetadata | None = None,
        validator: SQLValidator | None = None,
        read_only_mode: bool = True,
    ) -> None:
        self._provider = provider
        self._metadata = metadata
        self._validator = validator or SQLValidator()
        self._read_only_mode = read_only_mode
        self._tools: Mapping[ToolName, Tool] = MappingProxyType(self._build_catalog())

    @property
    def read_only_mode(self) -> bool:
        return self._read_only_mode

    def set_read_only_mode(self, read_only: bool) -> None:
        self._read_only_mode = read_only
        logger.info("Read-only mode %s", "enabled" if read_only else "disabled")

    @property
    def metadata(self) -> DatabaseMetadata | None:
        return self._metadata

    def set_metadata(self, metadata: DatabaseMetadata | None) -> None:
        self._metadata = metadata

    def get_tools(self) -> list[dict[str, Any]]:
        """Return the catalog in the function-calling wire shape (no handlers)."""
        return [tool.to_schema() for tool in self._tools.values()]

    def get_tool(self, name: str) -> Tool | None:
        try:
            return self._tools[ToolName(name)]
        except ValueError:
            return None

    def execute_tool(self, name: str, params: dict[str, Any] | None) -> ToolOutcome:
        """Run a tool and report its value or a tagged failure.

        Args:
            name: Tool name as sent by the model.
            params: Decoded parameter object.

        Returns:
            A ToolOutcome; this method does not raise for tool failures.
        """
        tool = self.get_tool(name)
        if tool is None:
            logger.warning("Model requested unknown tool %r", name)
            return ToolOutcome.failure(name, ErrorKind.TOOL_NOT_FOUND, f"Tool not found: {name}")

        params = params if params is not None else {}
        if not isinstance(params, dict):
            return ToolOutcome.failure(
                name,
                ErrorKind.PARSE_ERROR,
                "Tool arguments must be a JSON object",
            )

        missing = [key for key in tool.parameters["required"] if params.get(key) in (None, "")]
        if missing:
            return ToolOutcome.failure(
                name,
                ErrorKind.TOOL_EXECUTION_ERROR,
                f"Tool execution failed: missing required parameter(s): {', '.join(missing)}",
            )

        logger.info("Executing tool %s", name)
        try:
            value = tool.handler(params)
        except ToolError as e:
            logger.warning("Tool %s failed (%s): %s", name, e.kind.value, e)
            return ToolOutcome.failure(name, e.kind, f"Tool execution failed: {e}")
        except Exception as e:  # noqa: BLE001
            logger.warning("Tool %s failed: %s", name, e)
            return ToolOutcome.failure(
                name, ErrorKind.TOOL_EXECUTION_ERROR, f"Tool execution failed: {e}"
            )

        return ToolOutcome(tool=name, value=value)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def _build_catalog(self) -> dict[ToolName, Tool]:
        tools = [
            Tool(
                name=ToolName.LIST_TABLES,
                description="List all tables in the database with their schemas",
                parameters=_object_schema(
                    {
                        "schema": {
                            "type": "string",
                            "description": "Optional schema name to filter tables",
                        },
                    },
                    [],
                ),
                handler=self._list_tables,
            ),
            Tool(
                name=ToolName.DESCRIBE_TABLE,
                description="Get detailed information about a table structure",
                parameters=_object_schema(
                    {
                        "table_name": {
                            "type": "string",
                            "description": "Name of the table to describe",
                        },
                        "schema": {
                            "type": "string",
                            "description": "Schema name (optional)",
                        },
                    },
                    ["table_name"],
                ),
                handler=self._describe_table,
            ),
            Tool(
                name=ToolName.GENERATE_SQL,
                description="Generate SQL query based on natural language description",
                parameters=_object_schema(
                    {
                        "description": {
                            "type": "string",
                            "description": "Natural language description of what to query",
                        },
                        "tables": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Tables involved in the query",
                        },
                    },
                    ["description"],
                ),
                handler=self._generate_sql,
            ),
            Tool(
                name=ToolName.EXPLAIN_SQL,
                description="Explain what a SQL query does in natural language",
                parameters=_object_schema(
                    {
                        "sql": {
                            "type": "string",
                            "description": "SQL query to explain",
                        },
                    },
                    ["sql"],
                ),
                handler=self._explain_sql,
            ),
            Tool(
                name=ToolName.RUN_SQL,
                description="Execute a SQL query and return results",
                parameters=_object_schema(
                    {
                        "sql": {
                            "type": "string",
                            "description": "SQL query to execute",
                        },
                        "limit": {
                            "type": "number",
                            "description": (
                                f"Maximum number of rows to return (default: {DEFAULT_ROW_LIMIT})"
                            ),
                        },
                    },
                    ["sql"],
                ),
                handler=self._run_sql,
            ),
        ]
        return {tool.name: tool for tool in tools}

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _list_tables(self, params: dict[str, Any]) -> dict[str, Any]:
        if self._metadata is not None:
            tables = generate_tables_list(self._metadata)
        else:
            tables = self._provider.list_tables(params.get("schema"))
        return {"tables": tables, "count": len(tables)}

    def _describe_table(self, params: dict[str, Any]) -> dict[str, Any]:
        if self._metadata is not None:
            table = find_table(self._metadata, params["table_name"])
            if table is not None:
                return table.to_dict()
        return self._provider.describe_table(params["table_name"], params.get("schema")).to_dict()

    def _generate_sql(self, params: dict[str, Any]) -> dict[str, Any]:
        # SQL is written by the model itself; this only acknowledges the request.
        return {
            "message": "SQL generation should be handled by the LLM",
            "description": params["description"],
            "suggested_tables": params.get("tables"),
        }

    def _explain_sql(self, params: dict[str, Any]) -> dict[str, Any]:
        analysis = self._validator.analyze(params["sql"])
        return {
            "sql": params["sql"],
            "valid": analysis.is_valid,
            "type": analysis.statement_type,
            "tables": analysis.referenced_tables,
            "read_only": analysis.is_read_only,
            "errors": analysis.errors,
            "warnings": analysis.warnings,
        }

    def _run_sql(self, params: dict[str, Any]) -> dict[str, Any]:
        sql = params["sql"]
        try:
            limit = int(params.get("limit") or DEFAULT_ROW_LIMIT)
        except (TypeError, ValueError) as e:
            raise ToolExecutionError(f"Invalid limit: {params.get('limit')!r}") from e

        validation = self._validator.validate_safe(sql, self._read_only_mode)
        if not validation.safe:
            raise SafetyViolation(f"SQL validation failed: {validation.reason}")

        is_select = self._validator.analyze(sql).statement_type == "select"
        if is_select:
            sql = self._validator.add_limit(sql, limit)

        result = self._provider.run_query(sql)
        return {
            "rows": result.rows,
            "row_count": result.row_count,
            "fields": result.fields,
            "limited": is_select,
        }
