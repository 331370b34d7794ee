"""Pydantic request/response models for the API."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ConnectRequest(BaseModel):
    """Body for the connect endpoint."""

    type: Literal["postgresql", "mysql", "mssql", "sqlite"]
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    database: str | None = None
    filename: str | None = Field(None, description="Database file (SQLite only)")
    options: dict[str, Any] = Field(default_factory=dict)


class ScanRequest(BaseModel):
    """Body for the scan endpoint."""

    database: str | None = None
    schema_name: str | None = Field(None, alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class ChatRequest(BaseModel):
    """Body for the chat endpoint."""

    message: str = Field(..., min_length=1)


class QueryRequest(BaseModel):
    """Body for the direct query endpoint."""

    sql: str = Field(..., min_length=1)


class ReadOnlyRequest(BaseModel):
    """Body for the read-only toggle."""

    read_only: bool


class StatusResponse(BaseModel):
    """Acknowledgment for state-changing endpoints."""

    success: bool = True
    message: str


class ChatReply(BaseModel):
    """Response from the chat endpoint."""

    success: bool = True
    response: dict[str, Any]


class ReadOnlyStatus(BaseModel):
    """Current read-only setting of a session."""

    success: bool = True
    read_only: bool
