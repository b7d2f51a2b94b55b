"""Initial database schema.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-10-23

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Create enum types
    op.execute("CREATE TYPE quote_status AS ENUM ('saved', 'issued')")
    op.execute("CREATE TYPE policy_status AS ENUM ('active', 'cancelled')")

    # Create users table
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
        sa.UniqueConstraint("email"),
    )

    # Create quotes table (snapshots)
    op.create_table(
        "quotes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source_quote_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("origin", sa.String(10), nullable=False),
        sa.Column("destination", sa.String(10), nullable=False),
        sa.Column("begin_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("travel_type", sa.Integer, nullable=False, server_default="1"),
        sa.Column("passengers_count", sa.Integer, nullable=False),
        sa.Column("passengers", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("product_code", sa.String(50), nullable=True),
        sa.Column("rate_code", sa.String(50), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("quoted_total", sa.Numeric(10, 2), nullable=True),
        sa.Column("quoted_currency", sa.String(3), nullable=True, server_default="USD"),
        sa.Column("exchange_rate", sa.Numeric(12, 6), nullable=True),
        sa.Column("processing_fee", sa.Numeric(10, 2), nullable=True),
        sa.Column("selected_addons", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("promotional_code", sa.String(50), nullable=True),
        sa.Column(
            "status",
            postgresql.ENUM("saved", "issued", name="quote_status", create_type=False),
            nullable=False,
            server_default="saved",
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["source_quote_id"], ["quotes.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_quotes_user_id", "quotes", ["user_id"])
    op.create_index("ix_quotes_status", "quotes", ["status"])
    op.create_index("ix_quotes_expires_at", "quotes", ["expires_at"])
    op.create_index("ix_quotes_created_at", "quotes", ["created_at"])

    # Create passengers table
    op.create_table(
        "passengers",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("country_code", sa.String(2), nullable=False),
        sa.Column("document_type", sa.Integer, nullable=False, server_default="1"),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column("birth_date", sa.Date, nullable=False),
        sa.Column("lastname", sa.String(100), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("preferred_surname", sa.String(100), nullable=True),
        sa.Column("preferred_name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False),
        sa.Column("address_country_code", sa.String(2), nullable=False),
        sa.Column("street_name", sa.String(255), nullable=False),
        sa.Column("street_number", sa.String(20), nullable=False),
        sa.Column("postal_code", sa.String(20), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(100), nullable=False),
        sa.Column("complements", sa.String(255), nullable=True),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "ix_passengers_email_document", "passengers", ["email", "document_number"]
    )
    op.create_index("ix_passengers_name", "passengers", ["lastname", "name"])
    op.create_index("ix_passengers_is_deleted", "passengers", ["is_deleted"])
    op.create_index("ix_passengers_created_by_id", "passengers", ["created_by_id"])

    # Create policies table
    op.create_table(
        "policies",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("quote_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("passenger_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("voucher_code", sa.String(50), nullable=False),
        sa.Column("voucher_group", sa.String(50), nullable=False),
        sa.Column("policy_code", sa.String(50), nullable=True),
        sa.Column("booking_code", sa.String(50), nullable=True),
        sa.Column("ekit_url", sa.Text, nullable=True),
        sa.Column("policy_url", sa.Text, nullable=True),
        sa.Column("product_code", sa.String(50), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("rate_code", sa.String(50), nullable=False),
        sa.Column("begin_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("issuance_date", sa.Date, nullable=True),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("exchange_rate", sa.Numeric(12, 6), nullable=True),
        sa.Column("processing_fee", sa.Numeric(10, 2), nullable=True),
        sa.Column("promotional_code", sa.String(50), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=False),
        sa.Column("payment_brand", sa.String(50), nullable=False),
        sa.Column("payment_installments", sa.Integer, nullable=False, server_default="1"),
        sa.Column("payment_reference", sa.String(100), nullable=False),
        sa.Column("payment_currency", sa.String(3), nullable=False),
        sa.Column("payment_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("addons", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "status",
            postgresql.ENUM("active", "cancelled", name="policy_status", create_type=False),
            nullable=False,
            server_default="active",
        ),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("voucher_code"),
        sa.ForeignKeyConstraint(["quote_id"], ["quotes.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["passenger_id"], ["passengers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_policies_quote_id", "policies", ["quote_id"])
    op.create_index("ix_policies_passenger_id", "policies", ["passenger_id"])
    op.create_index("ix_policies_voucher_group", "policies", ["voucher_group"])
    op.create_index("ix_policies_status", "policies", ["status"])
    op.create_index("ix_policies_user_created", "policies", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_table("policies")
    op.drop_table("passengers")
    op.drop_table("quotes")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS policy_status")
    op.execute("DROP TYPE IF EXISTS quote_status")
