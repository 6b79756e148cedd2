"""initial washing station schema

Revision ID: 3c1f0a9d2b71
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '3c1f0a9d2b71'
down_revision = None
branch_labels = None
depends_on = None


PROCESSING_TYPES = ("HONEY", "NATURAL", "FULLY_WASHED")
PROCESSING_STATUSES = ("IN_PROGRESS", "BAGGING_STARTED", "TRANSFERRED", "COMPLETED")
DELIVERY_TYPES = ("DIRECT_DELIVERY", "SITE_COLLECTION")


def _enum(values, name):
    # Stored as VARCHAR + CHECK (native_enum=False on the models).
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=False)


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "cws",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("location", sa.String(length=160), nullable=True),
        sa.Column("havespeciality", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_wet_parchment_sender", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=80), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=30), nullable=False, server_default="CWS_MANAGER"),
        sa.Column("cws_id", sa.Integer(), sa.ForeignKey("cws.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("username"),
    )
    op.create_index("ix_user_cws_id", "user", ["cws_id"])

    op.create_table(
        "user_session",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_user_session_user_id", "user_session", ["user_id"])
    op.create_index("ix_user_session_token", "user_session", ["token"], unique=True)

    op.create_table(
        "site_collection",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("cws_id", sa.Integer(), sa.ForeignKey("cws.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_site_collection_cws_id", "site_collection", ["cws_id"])

    op.create_table(
        "purchase",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cws_id", sa.Integer(), sa.ForeignKey("cws.id"), nullable=False),
        sa.Column("delivery_type", _enum(DELIVERY_TYPES, "delivery_type"), nullable=False),
        sa.Column("site_collection_id", sa.Integer(), sa.ForeignKey("site_collection.id"), nullable=True),
        sa.Column("grade", sa.String(length=10), nullable=False),
        sa.Column("purchase_date", sa.Date(), nullable=False),
        sa.Column("total_kgs", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("cherry_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("transport_fee", sa.Float(), nullable=False, server_default="0"),
        sa.Column("commission_fee", sa.Float(), nullable=False, server_default="0"),
        sa.Column("batch_no", sa.String(length=40), nullable=False),
        sa.Column("dedupe_key", sa.String(length=120), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("dedupe_key", name="uq_purchase_dedupe_key"),
    )
    op.create_index("ix_purchase_cws_id", "purchase", ["cws_id"])
    op.create_index("ix_purchase_site_collection_id", "purchase", ["site_collection_id"])
    op.create_index("ix_purchase_purchase_date", "purchase", ["purchase_date"])
    op.create_index("ix_purchase_batch_no", "purchase", ["batch_no"])

    op.create_table(
        "processing",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("batch_no", sa.String(length=40), nullable=False),
        sa.Column("processing_type", _enum(PROCESSING_TYPES, "processing_type"), nullable=False),
        sa.Column("total_kgs", sa.Float(), nullable=False, server_default="0"),
        sa.Column("grade", sa.String(length=10), nullable=False),
        sa.Column("cws_id", sa.Integer(), sa.ForeignKey("cws.id"), nullable=False),
        sa.Column("status", _enum(PROCESSING_STATUSES, "processing_status"), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("batch_no", name="uq_processing_batch_no"),
    )
    op.create_index("ix_processing_cws_id", "processing", ["cws_id"])
    op.create_index("ix_processing_status", "processing", ["status"])

    op.create_table(
        "bagging_off",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("batch_no", sa.String(length=40), nullable=False),
        sa.Column("processing_id", sa.Integer(), sa.ForeignKey("processing.id"), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column(
            "processing_type",
            _enum(PROCESSING_TYPES, "bagging_off_processing_type"),
            nullable=False,
        ),
        sa.Column("output_kgs", _json(), nullable=False),
        sa.Column("total_output_kgs", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_bagging_off_batch_no", "bagging_off", ["batch_no"])
    op.create_index("ix_bagging_off_processing_id", "bagging_off", ["processing_id"])
    op.create_index("ix_bagging_off_status", "bagging_off", ["status"])

    op.create_table(
        "transfer",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("bagging_off_id", sa.Integer(), sa.ForeignKey("bagging_off.id"), nullable=False),
        sa.Column("batch_no", sa.String(length=40), nullable=False),
        sa.Column("transfer_date", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_transfer_bagging_off_id", "transfer", ["bagging_off_id"])
    op.create_index("ix_transfer_batch_no", "transfer", ["batch_no"])

    op.create_table(
        "wet_transfer",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("processing_id", sa.Integer(), sa.ForeignKey("processing.id"), nullable=False),
        sa.Column("batch_no", sa.String(length=40), nullable=True),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("source_cws_id", sa.Integer(), sa.ForeignKey("cws.id"), nullable=False),
        sa.Column("destination_cws_id", sa.Integer(), sa.ForeignKey("cws.id"), nullable=False),
        sa.Column("total_kgs", sa.Float(), nullable=False, server_default="0"),
        sa.Column("output_kgs", sa.Float(), nullable=False, server_default="0"),
        sa.Column("grade", sa.String(length=10), nullable=False),
        sa.Column("processing_type", sa.String(length=30), nullable=False),
        sa.Column("moisture_content", sa.Float(), nullable=False, server_default="12"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="PENDING"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("receiving_cws_id", sa.Integer(), sa.ForeignKey("cws.id"), nullable=True),
        sa.Column("received_date", sa.DateTime(), nullable=True),
        sa.Column("received_moisture", sa.Float(), nullable=True),
        sa.Column("defect_percentage", sa.Float(), nullable=True),
        sa.Column("clean_cup_score", sa.Float(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_wet_transfer_processing_id", "wet_transfer", ["processing_id"])
    op.create_index("ix_wet_transfer_batch_no", "wet_transfer", ["batch_no"])
    op.create_index("ix_wet_transfer_source_cws_id", "wet_transfer", ["source_cws_id"])
    op.create_index("ix_wet_transfer_destination_cws_id", "wet_transfer", ["destination_cws_id"])
    op.create_index("ix_wet_transfer_status", "wet_transfer", ["status"])

    op.create_table(
        "global_fees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("commission_fee", sa.Float(), nullable=False, server_default="0"),
        sa.Column("transport_fee", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_global_fees_created_at", "global_fees", ["created_at"])

    op.create_table(
        "cws_pricing",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cws_id", sa.Integer(), sa.ForeignKey("cws.id"), nullable=False),
        sa.Column("grade_a_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("transport_fee", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_cws_pricing_cws_id", "cws_pricing", ["cws_id"])
    op.create_index("ix_cws_pricing_created_at", "cws_pricing", ["created_at"])

    op.create_table(
        "site_collection_fees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "site_collection_id",
            sa.Integer(),
            sa.ForeignKey("site_collection.id"),
            nullable=False,
        ),
        sa.Column("transport_fee", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_site_collection_fees_site_collection_id", "site_collection_fees", ["site_collection_id"])
    op.create_index("ix_site_collection_fees_created_at", "site_collection_fees", ["created_at"])


def downgrade():
    for table in (
        "site_collection_fees",
        "cws_pricing",
        "global_fees",
        "wet_transfer",
        "transfer",
        "bagging_off",
        "processing",
        "purchase",
        "site_collection",
        "user_session",
        "user",
        "cws",
    ):
        op.drop_table(table)
