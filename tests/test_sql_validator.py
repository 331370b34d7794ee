import pytest

from database.SQLValidator import DEFAULT_ROW_LIMIT, SQLValidator


@pytest.fixture
def validator():
    return SQLValidator()


def test_add_limit_appends_default_limit(validator):
    assert validator.add_limit("SELECT * FROM users") == f"SELECT * FROM users LIMIT {DEFAULT_ROW_LIMIT}"


def test_add_limit_keeps_existing_limit(validator):
    sql = "SELECT * FROM users LIMIT 10"
    assert validator.add_limit(sql) == sql


def test_add_limit_ignores_non_select(validator):
    sql = "UPDATE users SET name = 'x'"
    assert validator.add_limit(sql, 5) == sql


def test_add_limit_drops_trailing_semicolon(validator):
    assert validator.add_limit("select id from users;", 50) == "select id from users LIMIT 50"


@pytest.mark.parametrize(
    "sql, expected_type",
    [
        ("SELECT * FROM users", "select"),
        ("SELECT updated_at FROM users", "select"),
        ("SELECT * FROM a UNION SELECT * FROM b", "select"),
        ("INSERT INTO users (name) VALUES ('x')", "insert"),
        ("UPDATE users SET name = 'x'", "update"),
        ("DELETE FROM users", "delete"),
        ("CREATE TABLE t (id INT)", "create"),
        ("DROP TABLE t", "drop"),
        ("ALTER TABLE t ADD COLUMN x INT", "alter"),
        ("TRUNCATE TABLE t", "truncate"),
    ],
)
def test_analyze_statement_type(validator, sql, expected_type):
    analysis = validator.analyze(sql)
    assert analysis.is_valid
    assert analysis.statement_type == expected_type
    assert analysis.is_read_only == (expected_type == "select")


def test_analyze_collects_from_and_join_tables(validator):
    analysis = validator.analyze(
        "SELECT u.name, o.total FROM users u JOIN orders o ON u.id = o.user_id"
    )
    assert analysis.referenced_tables == ["users", "orders"]


def test_analyze_collects_subquery_tables(validator):
    analysis = validator.analyze("SELECT * FROM (SELECT id FROM users) AS u")
    assert "users" in analysis.referenced_tables


def test_analyze_collects_write_targets(validator):
    assert validator.analyze("INSERT INTO users (name) VALUES ('x')").referenced_tables == ["users"]
    assert validator.analyze("DELETE FROM orders WHERE id = 1").referenced_tables == ["orders"]


def test_analyze_parse_error(validator):
    analysis = validator.analyze("SELECT * FROM users WHERE (id = 1")
    assert not analysis.is_valid
    assert analysis.errors
    assert analysis.errors[0].startswith("Parse error")


def test_analyze_empty_text(validator):
    analysis = validator.analyze("   ")
    assert not analysis.is_valid
    assert analysis.errors == ["Parse error: no SQL statement found"]


def test_analyze_multiple_statements(validator):
    analysis = validator.analyze("SELECT 1; SELECT 2")
    assert analysis.is_valid
    assert analysis.warnings == ["Multiple statements detected"]
    assert analysis.statement_type == "select"


def test_validate_safe_allows_select(validator):
    check = validator.validate_safe("SELECT * FROM users")
    assert check.safe
    assert check.reason is None


def test_validate_safe_blocks_write_in_read_only_mode(validator):
    check = validator.validate_safe("DELETE FROM users", read_only_mode=True)
    assert not check.safe
    assert check.reason == "Write operations not allowed in read-only mode"


def test_validate_safe_allows_write_outside_read_only_mode(validator):
    assert validator.validate_safe("DELETE FROM users WHERE id = 1", read_only_mode=False).safe


def test_validate_safe_stacked_drop_blocked_in_both_modes(validator):
    sql = "SELECT 1; DROP TABLE customers"

    read_only = validator.validate_safe(sql, read_only_mode=True)
    assert not read_only.safe
    assert read_only.reason == "Write operations not allowed in read-only mode"

    writable = validator.validate_safe(sql, read_only_mode=False)
    assert not writable.safe
    assert writable.reason == "Potentially dangerous operation detected"


def test_validate_safe_stacked_delete_blocked(validator):
    check = validator.validate_safe("SELECT * FROM users; DELETE FROM users", read_only_mode=False)
    assert not check.safe
    assert check.reason == "Potentially dangerous operation detected"


def test_validate_safe_rejects_unparseable_sql(validator):
    check = validator.validate_safe("SELECT * FROM users WHERE (id = 1")
    assert not check.safe
    assert check.reason.startswith("Parse error")


def test_analyze_collects_drop_target(validator):
    analysis = validator.analyze("DROP TABLE t")
    assert analysis.referenced_tables == ["t"]


def test_data_modifying_cte_is_a_write(validator):
    sql = "WITH d AS (DELETE FROM t RETURNING *) SELECT * FROM d"

    assert validator.analyze(sql).is_read_only is False
    assert not validator.validate_safe(sql, read_only_mode=True).safe


def test_merge_is_a_write(validator):
    sql = "MERGE INTO t USING s ON t.id = s.id WHEN MATCHED THEN DELETE"

    assert validator.analyze(sql).is_read_only is False
    check = validator.validate_safe(sql, read_only_mode=True)
    assert check.reason == "Write operations not allowed in read-only mode"
