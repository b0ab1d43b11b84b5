"""locations, boxes, transfers and transfer log

Revision ID: 0001_initial
Revises:
Create Date: 2025-03-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "locations",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("code", sa.String(length=255), nullable=False, unique=True, index=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_be_origin", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_be_destination", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("erp_location_id", sa.Integer(), nullable=True),
        sa.Column("ecommerce_location_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "boxes",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("barcode", sa.String(length=255), nullable=False, unique=True, index=True),
        sa.Column("label", sa.String(length=255), nullable=True),
        sa.Column("sku", sa.String(length=255), nullable=False, index=True),
        sa.Column("product_name", sa.String(length=255), nullable=True),
        sa.Column("erp_product_id", sa.Integer(), nullable=True),
        sa.Column("qty_per_box", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "transfers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("client_transfer_id", sa.String(length=255), nullable=True, unique=True),
        sa.Column("request_hash", sa.String(length=64), nullable=True),
        sa.Column("origin_code", sa.String(length=255), nullable=False, index=True),
        sa.Column("destination_code", sa.String(length=255), nullable=False, index=True),
        sa.Column("status", sa.String(length=20), nullable=False, index=True),
        sa.Column("owner", sa.String(length=255), nullable=True, index=True),
        sa.Column("erp_movement_id", sa.Integer(), nullable=True),
        sa.Column("erp_movement_name", sa.String(length=255), nullable=True),
        sa.Column("erp_movement_state", sa.String(length=50), nullable=True),
        sa.Column("ecommerce_transfer_ref", sa.String(length=255), nullable=True, index=True),
        sa.Column("commit_claim", sa.String(length=64), nullable=True),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("validated_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_transfers_owner_status", "transfers", ["owner", "status"])
    op.create_table(
        "transfer_lines",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_id", GUID(), sa.ForeignKey("transfers.id"), nullable=False, index=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sku", sa.String(length=255), nullable=False),
        sa.Column("scanned_code", sa.String(length=255), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("box_code", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "transfer_logs",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_id", GUID(), nullable=True, index=True),
        sa.Column("event", sa.String(length=100), nullable=False, index=True),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=True),
        sa.Column("trace_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("transfer_logs")
    op.drop_table("transfer_lines")
    op.drop_index("ix_transfers_owner_status", table_name="transfers")
    op.drop_table("transfers")
    op.drop_table("boxes")
    op.drop_table("locations")
