"""Create property, room, booking, occupancy, rate, voucher, feed and log tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f1c9a7d2b10"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


def _timestamps() -> list[sa.Column]:
    return [_timestamp("created_at"), _timestamp("updated_at")]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "properties",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("external_id", sa.String(64), nullable=True, unique=True),
        sa.Column("channel_invite_code", sa.String(255), nullable=True),
        sa.Column("channel_refresh_token", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "rooms",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "property_id",
            sa.String(64),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("number", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("room_type", sa.String(100), nullable=True),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("max_adults", sa.Integer(), nullable=False),
        sa.Column("max_children", sa.Integer(), nullable=False),
        sa.Column("min_nights", sa.Integer(), nullable=False),
        sa.Column("amenities", JSONType, nullable=True),
        sa.Column("external_id", sa.String(64), nullable=True, unique=True),
        *_timestamps(),
    )
    op.create_index("ix_rooms_property_id", "rooms", ["property_id"])

    op.create_table(
        "guests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("language", sa.String(8), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "room_id", sa.String(64), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("booking_ref", sa.String(32), nullable=True, unique=True),
        sa.Column(
            "guest_id", sa.Integer(), sa.ForeignKey("guests.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("guest_name", sa.String(255), nullable=False),
        sa.Column("guest_email", sa.String(255), nullable=True),
        sa.Column("guest_phone", sa.String(64), nullable=True),
        sa.Column("num_adults", sa.Integer(), nullable=False),
        sa.Column("num_children", sa.Integer(), nullable=False),
        sa.Column("guest_ages", JSONType, nullable=True),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=True, unique=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("voucher_code", sa.String(64), nullable=True),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("deposit_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("balance_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("balance_due_date", sa.Date(), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_room_dates", "bookings", ["room_id", "check_in", "check_out"])

    # One row per occupied night; the key rejects double bookings at the storage level
    op.create_table(
        "booking_nights",
        sa.Column(
            "room_id", sa.String(64), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("night", sa.Date(), nullable=False),
        sa.Column(
            "booking_id",
            sa.String(64),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("room_id", "night", name="pk_booking_nights"),
    )
    op.create_index("ix_booking_nights_booking_id", "booking_nights", ["booking_id"])

    op.create_table(
        "price_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "room_id", sa.String(64), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("min_stay", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("room_id", "date", name="uq_price_rules_room_date"),
    )

    op.create_table(
        "voucher_codes",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False, unique=True),
        sa.Column("discount_type", sa.String(20), nullable=False),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("min_nights", sa.Integer(), nullable=True),
        sa.Column("min_booking_value", sa.Numeric(10, 2), nullable=True),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("used_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("valid_from", sa.Date(), nullable=True),
        sa.Column("valid_until", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "max_uses IS NULL OR used_count <= max_uses", name="ck_voucher_codes_usage_cap"
        ),
    )

    op.create_table(
        "voucher_redemptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "voucher_id",
            sa.String(64),
            sa.ForeignKey("voucher_codes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "booking_id",
            sa.String(64),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("discount_applied", sa.Numeric(10, 2), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_voucher_redemptions_voucher_id", "voucher_redemptions", ["voucher_id"])
    op.create_index("ix_voucher_redemptions_booking_id", "voucher_redemptions", ["booking_id"])

    op.create_table(
        "ical_feeds",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "room_id", sa.String(64), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("channel", sa.String(50), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "webhook_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("direction", sa.String(10), nullable=False),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("event", sa.String(50), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("booking_id", sa.String(64), nullable=True),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("room_id", sa.String(64), nullable=True),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("details", JSONType, nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_webhook_logs_status", "webhook_logs", ["status"])
    op.create_index("ix_webhook_logs_created_at", "webhook_logs", ["created_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("webhook_logs")
    op.drop_table("ical_feeds")
    op.drop_table("voucher_redemptions")
    op.drop_table("voucher_codes")
    op.drop_table("price_rules")
    op.drop_table("booking_nights")
    op.drop_table("bookings")
    op.drop_table("guests")
    op.drop_table("rooms")
    op.drop_table("properties")
