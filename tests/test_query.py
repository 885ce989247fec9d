import pytest

from salestx import QuerySet, SQLQuery
from salestx.exception import MissingSQL, StatementError


def test_load_default_queries():
    queries = QuerySet()

    assert queries.insert_order.name == "insert_order"
    assert queries.insert_order.param_count == 3
    assert queries.insert_product.param_count == 2
    assert queries.select_monthly_sales.param_count == 2
    assert queries["update_monthly_sales"].param_count == 3
    assert queries.insert_order.text.startswith("INSERT INTO orders")


def test_query_membership():
    queries = QuerySet()

    assert "insert_order" in queries
    assert "delete_order" not in queries
    with pytest.raises(AttributeError, match="delete_order"):
        queries.delete_order


def test_overrides_take_precedence():
    queries = QuerySet(
        overrides={
            "insert_order": """
                INSERT INTO archived_orders (product_id, order_date, amount)
                VALUES ($1, $2, $3)
            """
        }
    )

    assert queries.insert_order.text.startswith(
        "INSERT INTO archived_orders"
    )
    assert queries.insert_order.param_count == 3
    assert queries.insert_product.text.startswith("INSERT INTO products")


def test_load_from_directory(tmp_path):
    for name in QuerySet.names:
        (tmp_path / f"{name}.sql").write_text(f"SELECT '{name}'")

    queries = QuerySet(path=str(tmp_path))

    assert queries.path == tmp_path
    expected = "SELECT 'select_monthly_sales'"
    assert queries.select_monthly_sales.text == expected


def test_missing_sql(tmp_path):
    (tmp_path / "insert_product.sql").write_text("SELECT 1")

    with pytest.raises(MissingSQL, match="insert_order.sql"):
        QuerySet(path=tmp_path)


def test_invalid_sql_is_rejected_on_load():
    with pytest.raises(StatementError):
        QuerySet(overrides={"insert_order": "SELECT $2"})


def test_sql_query_is_dedented():
    query = SQLQuery(
        "select_monthly_sales",
        """
            SELECT total_amount
            FROM monthly_sales
        """,
    )

    assert query.text == "SELECT total_amount\nFROM monthly_sales"
    assert query == SQLQuery("other_name", query.text)
    assert str(query).startswith("<SQLQuery name=select_monthly_sales")
