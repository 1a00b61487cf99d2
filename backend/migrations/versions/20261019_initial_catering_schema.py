"""Initial catering schema: orders, order number counters, status events, stock

Revision ID: 20261019_initial_catering
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial_catering"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def _money(name):
    return sa.Column(name, sa.Numeric(12, 2), nullable=False, server_default="0")


def upgrade():
    # Reference data
    op.create_table(
        "airports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("fbo_name", sa.String(length=255), nullable=True),
        sa.Column("fbo_email", sa.String(length=255), nullable=True),
        sa.Column("fbo_phone", sa.String(length=64), nullable=True),
        sa.Column("iata_code", sa.String(length=8), nullable=True),
        sa.Column("icao_code", sa.String(length=8), nullable=True),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_airports_iata_code", "airports", ["iata_code"], unique=False)
    op.create_index("ix_airports_icao_code", "airports", ["icao_code"], unique=False)

    op.create_table(
        "caterers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("iata_code", sa.String(length=8), nullable=True),
        sa.Column("icao_code", sa.String(length=8), nullable=True),
        sa.Column("time_zone", sa.String(length=64), nullable=True),
        sa.Column("airport_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["airport_id"], ["airports.id"]),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_caterers_airport_id", "caterers", ["airport_id"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_customers_email", "customers", ["email"], unique=False)

    # Orders
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_number", sa.String(length=32), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="quote_pending"),
        sa.Column("payment_status", sa.String(length=24), nullable=False, server_default="unpaid"),
        sa.Column("payment_type", sa.String(length=16), nullable=True),
        sa.Column("payment_info", sa.Text(), nullable=True),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default="0"),
        _money("total"),
        _money("total_tax"),
        _money("total_charges"),
        _money("discount"),
        _money("manual_discount"),
        _money("delivery_charge"),
        _money("grand_total"),
        _money("vendor_cost"),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("caterer_id", sa.Integer(), nullable=True),
        sa.Column("delivery_airport_id", sa.Integer(), nullable=True),
        sa.Column("customer_note", sa.Text(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("packaging_note", sa.Text(), nullable=True),
        sa.Column("dietary_res", sa.Text(), nullable=True),
        sa.Column("reheat_method", sa.String(length=255), nullable=True),
        sa.Column("tail_number", sa.String(length=32), nullable=True),
        sa.Column("delivery_date", sa.String(length=32), nullable=True),
        sa.Column("delivery_time", sa.String(length=32), nullable=True),
        sa.Column("priority", sa.String(length=32), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["caterer_id"], ["caterers.id"]),
        sa.ForeignKeyConstraint(["delivery_airport_id"], ["airports.id"]),
        sa.UniqueConstraint("order_number", name="uq_orders_order_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_orders_type", "orders", ["type"], unique=False)
    op.create_index("ix_orders_status", "orders", ["status"], unique=False)
    op.create_index("ix_orders_payment_status", "orders", ["payment_status"], unique=False)
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"], unique=False)
    op.create_index("ix_orders_caterer_id", "orders", ["caterer_id"], unique=False)
    op.create_index("ix_orders_delivery_airport_id", "orders", ["delivery_airport_id"], unique=False)
    op.create_index("ix_orders_status_created", "orders", ["status", "created_at"], unique=False)
    op.create_index("ix_orders_type_status", "orders", ["type", "status"], unique=False)

    # Order number counters (one row per prefix)
    op.create_table(
        "order_number_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("prefix", sa.String(length=2), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("prefix", name="uq_order_number_sequences_prefix"),
        sqlite_autoincrement=True,
    )

    # Status transition outbox
    op.create_table(
        "order_status_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("previous_status", sa.String(length=32), nullable=False),
        sa.Column("new_status", sa.String(length=32), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_order_status_events_order_id", "order_status_events", ["order_id"], unique=False)
    op.create_index("ix_order_status_events_pending", "order_status_events", ["dispatched_at", "id"], unique=False)

    # Stock
    op.create_table(
        "stock_inventories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("unit", sa.String(length=50), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("minimum_quantity", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_value", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("supplier", sa.String(length=255), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("last_restocked_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_inventories_category", "stock_inventories", ["category"], unique=False)
    op.create_index(
        "ix_stock_inventories_category_active", "stock_inventories", ["category", "is_active"], unique=False
    )


def downgrade():
    op.drop_table("stock_inventories")
    op.drop_table("order_status_events")
    op.drop_table("order_number_sequences")
    op.drop_table("orders")
    op.drop_table("customers")
    op.drop_table("caterers")
    op.drop_table("airports")
