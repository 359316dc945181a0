from __future__ import annotations

from stockroom.migrations import Migration, MigrationKind, SchemaManager

INITIAL_TABLES_SQL = r"""
-- Products (category is the legacy free-text label)
CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  description TEXT,
  sku TEXT UNIQUE,
  price REAL NOT NULL DEFAULT 0,
  cost REAL NOT NULL DEFAULT 0,
  quantity INTEGER NOT NULL DEFAULT 0,
  min_quantity INTEGER NOT NULL DEFAULT 0,
  category TEXT,
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
  updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Sales (one checkout = one sale)
CREATE TABLE IF NOT EXISTS sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  total_amount REAL NOT NULL,
  payment_method TEXT,
  notes TEXT,
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Sale line items (unit_price is the price at time of sale)
CREATE TABLE IF NOT EXISTS sale_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sale_id INTEGER NOT NULL,
  product_id INTEGER NOT NULL,
  quantity INTEGER NOT NULL,
  unit_price REAL NOT NULL,
  subtotal REAL NOT NULL,
  FOREIGN KEY (sale_id) REFERENCES sales(id) ON DELETE CASCADE,
  FOREIGN KEY (product_id) REFERENCES products(id)
);

CREATE INDEX IF NOT EXISTS idx_sales_created_at ON sales(created_at);
CREATE INDEX IF NOT EXISTS idx_sale_items_sale_id ON sale_items(sale_id);
"""

CATEGORIES_SQL = r"""
CREATE TABLE IF NOT EXISTS categories (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  description TEXT,
  color TEXT,
  created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Seed categories from the legacy product labels
INSERT OR IGNORE INTO categories (name)
SELECT DISTINCT category FROM products WHERE category IS NOT NULL AND category != '';

ALTER TABLE products ADD COLUMN category_id INTEGER REFERENCES categories(id);

-- Link products to their category by name
UPDATE products SET category_id = (
  SELECT id FROM categories WHERE categories.name = products.category
) WHERE category IS NOT NULL AND category != '';

CREATE INDEX IF NOT EXISTS idx_products_category_id ON products(category_id);
"""

# Forward-only: neither version ships a DOWN script, so downgrading is unsupported.
MIGRATIONS = [
    Migration(1, "create_initial_tables", INITIAL_TABLES_SQL, MigrationKind.UP),
    Migration(2, "add_categories_table", CATEGORIES_SQL, MigrationKind.UP),
]

DOMAIN_TABLES = ("products", "sales", "sale_items", "categories")


def schema_manager() -> SchemaManager:
    return SchemaManager(MIGRATIONS)
