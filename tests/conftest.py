import os
import sqlite3
import tempfile

import pytest

from chatbot.models import Message, ToolCall
from database.metadata import (
    ColumnMetadata,
    ConnectionConfig,
    DatabaseMetadata,
    ForeignKeyMetadata,
    TableMetadata,
)
from database.SQLiteProvider import SQLiteProvider


class FakeLLMClient:
    """Returns scripted assistant messages and records every request."""

    def __init__(self, replies=None, default=None):
        self.replies = list(replies or [])
        self.default = default
        self.calls = []

    def chat(self, messages, tools):
        self.calls.append({"messages": list(messages), "tools": list(tools)})
        if self.replies:
            return self.replies.pop(0)
        if self.default is not None:
            return self.default
        return Message(role="assistant", content="Done.")


def tool_reply(name, arguments="{}", call_id="call_1"):
    return Message(
        role="assistant",
        tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)],
    )


def text_reply(content):
    return Message(role="assistant", content=content)


@pytest.fixture
def temp_sqlite_db():
    fd, path = tempfile.mkstemp(suffix=".db")
    try:
        conn = sqlite3.connect(path)
        cur = conn.cursor()
        cur.execute(
            "CREATE TABLE customers (id INTEGER PRIMARY KEY, email TEXT NOT NULL, country TEXT);"
        )
        cur.execute(
            "CREATE TABLE orders ("
            "id INTEGER PRIMARY KEY, "
            "customer_id INTEGER NOT NULL REFERENCES customers(id), "
            "total REAL DEFAULT 0);"
        )
        cur.execute("INSERT INTO customers (email, country) VALUES ('alice@example.com', 'USA');")
        cur.execute("INSERT INTO customers (email, country) VALUES ('bob@example.com', 'UK');")
        cur.execute("INSERT INTO orders (customer_id, total) VALUES (1, 19.5);")
        conn.commit()
        conn.close()
        yield path
    finally:
        os.close(fd)
        os.remove(path)


@pytest.fixture
def sqlite_provider(temp_sqlite_db):
    provider = SQLiteProvider()
    provider.connect(ConnectionConfig(type="sqlite", filename=temp_sqlite_db))
    yield provider
    provider.disconnect()


@pytest.fixture
def metadata():
    customers = TableMetadata(
        name="customers",
        columns=[
            ColumnMetadata(name="id", type="INTEGER", nullable=False, is_primary_key=True),
            ColumnMetadata(name="email", type="TEXT", nullable=False),
        ],
        primary_key=["id"],
        row_count=2,
    )
    orders = TableMetadata(
        name="orders",
        columns=[
            ColumnMetadata(name="id", type="INTEGER", nullable=False, is_primary_key=True),
            ColumnMetadata(
                name="customer_id", type="INTEGER", nullable=False, is_foreign_key=True
            ),
        ],
        foreign_keys=[
            ForeignKeyMetadata(
                name="fk_orders_customer_id",
                column="customer_id",
                referenced_table="customers",
                referenced_column="id",
            )
        ],
        primary_key=["id"],
        row_count=1,
    )
    return DatabaseMetadata(name="shop", tables=[customers, orders])


@pytest.fixture
def fake_llm():
    return FakeLLMClient()
