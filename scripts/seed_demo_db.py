"""
SQL Chat Assistant — demo database generation.

Creates a small SQLite store database (customers, products, orders,
order_items) to try the assistant against.

Usage:
    uv run scripts/seed_demo_db.py [--output PATH] [--seed N] [--orders N]
"""

import argparse
import datetime
import random
import sqlite3
import sys
from pathlib import Path

SCHEMA_SQL = """
CREATE TABLE customers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT UNIQUE NOT NULL,
    country TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE products (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    category TEXT,
    price DECIMAL(10, 2),
    stock INTEGER DEFAULT 0
);

CREATE TABLE orders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id INTEGER NOT NULL,
    order_date DATETIME DEFAULT CURRENT_TIMESTAMP,
    total_amount DECIMAL(10, 2),
    status TEXT DEFAULT 'pending',
    FOREIGN KEY (customer_id) REFERENCES customers(id)
);

CREATE TABLE order_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id INTEGER NOT NULL,
    product_id INTEGER NOT NULL,
    quantity INTEGER NOT NULL,
    unit_price DECIMAL(10, 2),
    FOREIGN KEY (order_id) REFERENCES orders(id),
    FOREIGN KEY (product_id) REFERENCES products(id)
);

CREATE INDEX idx_orders_customer ON orders(customer_id);
CREATE INDEX idx_orders_date ON orders(order_date);
CREATE INDEX idx_items_order ON order_items(order_id);
"""

CUSTOMERS = [
    ("Alice Johnson", "alice@example.com", "USA"),
    ("Bob Smith", "bob@example.com", "UK"),
    ("Carol White", "carol@example.com", "Canada"),
    ("David Brown", "david@example.com", "Australia"),
    ("Eva Green", "eva@example.com", "Germany"),
    ("Frank Miller", "frank@example.com", "USA"),
    ("Grace Lee", "grace@example.com", "South Korea"),
    ("Henry Davis", "henry@example.com", "UK"),
    ("Ivy Chen", "ivy@example.com", "China"),
    ("Jack Wilson", "jack@example.com", "USA"),
]

PRODUCTS = [
    ("Laptop Pro 15", "Electronics", 1299.99, 25),
    ("Wireless Mouse", "Electronics", 29.99, 150),
    ("USB-C Hub", "Electronics", 49.99, 80),
    ("Standing Desk", "Furniture", 499.00, 12),
    ("Office Chair", "Furniture", 249.50, 30),
    ("Notebook Pack", "Stationery", 9.99, 400),
    ("Gel Pens (10)", "Stationery", 12.49, 250),
    ("Coffee Beans 1kg", "Grocery", 18.00, 60),
]

STATUSES = ["pending", "processing", "shipped", "delivered", "cancelled"]


def parse_args():
    """Parse command-line arguments for the demo database generator.

    Returns:
        argparse.Namespace with 'output' (Path), 'seed' (int or None) and
        'orders' (int).
    """
    parser = argparse.ArgumentParser(
        description="Generate the SQL Chat Assistant demo store database (SQLite).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("data/demo.db"),
        help="Output path for the SQLite database file (default: data/demo.db)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible data generation (default: random)",
    )
    parser.add_argument(
        "--orders",
        type=int,
        default=200,
        help="Number of orders to generate (default: 200)",
    )
    return parser.parse_args()


def generate_orders(cursor, customer_ids, product_rows, num_orders, base_time):
    """Insert orders with one to four line items each.

    Args:
        cursor: sqlite3.Cursor connected to the target database.
        customer_ids: Ids of the inserted customers.
        product_rows: (id, price) pairs of the inserted products.
        num_orders: How many orders to create.
        base_time: Latest possible order date; orders span the prior 180 days.

    Returns:
        Number of order_items rows inserted.
    """
    item_count = 0
    for _ in range(num_orders):
        order_date = base_time - datetime.timedelta(
            days=random.randint(0, 180), minutes=random.randint(0, 24 * 60)
        )
        cursor.execute(
            "INSERT INTO orders (customer_id, order_date, total_amount, status) VALUES (?, ?, 0, ?)",
            (random.choice(customer_ids), order_date.isoformat(sep=" "), random.choice(STATUSES)),
        )
        order_id = cursor.lastrowid

        total = 0.0
        for product_id, price in random.sample(product_rows, k=random.randint(1, 4)):
            quantity = random.randint(1, 5)
            total += quantity * price
            cursor.execute(
                "INSERT INTO order_items (order_id, product_id, quantity, unit_price) VALUES (?, ?, ?, ?)",
                (order_id, product_id, quantity, price),
            )
            item_count += 1

        cursor.execute(
            "UPDATE orders SET total_amount = ? WHERE id = ?", (round(total, 2), order_id)
        )
    return item_count


def main():
    """Create the schema, insert customers → products → orders, print a summary."""
    args = parse_args()
    output_path = args.output

    # If no seed provided, generate one and print it so the run can be reproduced.
    seed = args.seed if args.seed is not None else random.randint(0, 2**31 - 1)
    random.seed(seed)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.exists():
        output_path.unlink()

    conn = None
    try:
        conn = sqlite3.connect(output_path)
        cursor = conn.cursor()
        cursor.executescript(SCHEMA_SQL)

        cursor.executemany(
            "INSERT INTO customers (name, email, country) VALUES (?, ?, ?)", CUSTOMERS
        )
        cursor.executemany(
            "INSERT INTO products (name, category, price, stock) VALUES (?, ?, ?, ?)", PRODUCTS
        )
        customer_ids = [row[0] for row in cursor.execute("SELECT id FROM customers")]
        product_rows = list(cursor.execute("SELECT id, price FROM products"))

        base_time = datetime.datetime.now().replace(microsecond=0)
        item_count = generate_orders(cursor, customer_ids, product_rows, args.orders, base_time)
        conn.commit()

        print("Demo database generated successfully.")
        print(f"  Output:    {output_path}")
        print(f"  Seed:      {seed}")
        print(f"  Customers: {len(customer_ids)}")
        print(f"  Products:  {len(product_rows)}")
        print(f"  Orders:    {args.orders}")
        print(f"  Items:     {item_count}")

    except sqlite3.Error as e:
        print(f"Error: Database operation failed: {e}", file=sys.stderr)
        # Clean up incomplete database file
        if conn:
            conn.close()
            conn = None
        if output_path.exists():
            output_path.unlink()
        sys.exit(1)

    finally:
        if conn:
            conn.close()


if __name__ == "__main__":
    main()
