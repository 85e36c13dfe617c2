"""Create product, category, location and history_entry tables.

Revision ID: 20261019_create_stock_ledger_tables
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_create_stock_ledger_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    for table_name in ("category", "location"):
        op.create_table(
            table_name,
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("owner_id", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index(f"ix_{table_name}_owner_id", table_name, ["owner_id"])

    op.create_table(
        "product",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sku", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("min_stock", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("category_id", sa.String(length=36), nullable=True),
        sa.Column("location_id", sa.String(length=36), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("brand", sa.String(), nullable=False),
        sa.Column("specification", sa.Text(), nullable=False),
        sa.Column("unit_of_measure", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["category.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["location.id"]),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_product_owner_id", "product", ["owner_id"])
    op.create_index("ix_product_sku", "product", ["sku"])

    op.create_table(
        "history_entry",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column(
            "timestamp",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("contact_person", sa.String(length=120), nullable=True),
        sa.Column("price_per_unit", sa.Numeric(12, 2), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_history_entry_owner_id", "history_entry", ["owner_id"])
    op.create_index("ix_history_entry_product_id", "history_entry", ["product_id"])


def downgrade() -> None:
    op.drop_index("ix_history_entry_product_id", table_name="history_entry")
    op.drop_index("ix_history_entry_owner_id", table_name="history_entry")
    op.drop_table("history_entry")
    op.drop_index("ix_product_sku", table_name="product")
    op.drop_index("ix_product_owner_id", table_name="product")
    op.drop_table("product")
    for table_name in ("location", "category"):
        op.drop_index(f"ix_{table_name}_owner_id", table_name=table_name)
        op.drop_table(table_name)
