"""Initial schema — tracked_items, jobs, job_results, offers, pricing runs, daily prices.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

item_state = postgresql.ENUM("OK", "WAITING_REVIEW", "ERROR", name="item_state", create_type=False)
job_type = postgresql.ENUM("SCRAPE_URL", name="job_type", create_type=False)
job_state = postgresql.ENUM(
    "PENDING", "RUNNING", "WAITING_REVIEW", "SUCCEEDED", "FAILED", "CANCELLED",
    name="job_state", create_type=False,
)
job_result_status = postgresql.ENUM("OK", "WARNING", "ERROR", name="job_result_status", create_type=False)
offer_state = postgresql.ENUM("OK", "INACTIVE", name="offer_state", create_type=False)
pricing_run_status = postgresql.ENUM("RUNNING", "DONE", "PARTIAL", name="pricing_run_status", create_type=False)
pricing_run_item_status = postgresql.ENUM(
    "PENDING", "OK", "FAIL", "SKIPPED",
    name="pricing_run_item_status", create_type=False,
)

ENUMS = [
    item_state,
    job_type,
    job_state,
    job_result_status,
    offer_state,
    pricing_run_status,
    pricing_run_item_status,
]


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    # Tracked items
    op.create_table(
        "tracked_items",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("engine_id", sa.Integer, index=True),
        sa.Column("url_original", sa.String(1000), nullable=False),
        sa.Column("url_canonical", sa.String(1000)),
        sa.Column("description", sa.String(500)),
        sa.Column("selected", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("state", item_state, nullable=False, server_default="OK"),
        sa.Column("error_message", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_item_selected_state", "tracked_items", ["selected", "state"])

    # Jobs
    op.create_table(
        "jobs",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("job_type", job_type, nullable=False, server_default="SCRAPE_URL"),
        sa.Column("state", job_state, nullable=False, server_default="PENDING"),
        sa.Column("priority", sa.Integer, server_default=sa.text("100")),
        sa.Column("item_id", sa.BigInteger, sa.ForeignKey("tracked_items.id"), index=True),
        sa.Column("payload", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("attempts", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("max_attempts", sa.Integer, nullable=False, server_default=sa.text("3")),
        sa.Column("next_run_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("lease_owner", sa.String(200)),
        sa.Column("lease_expires_at", sa.DateTime(timezone=True)),
        sa.Column("last_error", sa.Text),
        sa.Column("started_at", sa.DateTime(timezone=True)),
        sa.Column("finished_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_job_claim", "jobs", ["state", "next_run_at", "priority"])

    # Job results
    op.create_table(
        "job_results",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("job_id", sa.BigInteger, sa.ForeignKey("jobs.id"), unique=True, nullable=False),
        sa.Column("status", job_result_status, nullable=False),
        sa.Column("candidates", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("warnings", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("errors", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("engine_id", sa.Integer),
        sa.Column("engine_version", sa.String(50)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Offers
    op.create_table(
        "offers",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("item_id", sa.BigInteger, sa.ForeignKey("tracked_items.id"), nullable=False, index=True),
        sa.Column("engine_id", sa.Integer),
        sa.Column("url_original", sa.String(1000)),
        sa.Column("url_canonical", sa.String(1000)),
        sa.Column("presentation", sa.Numeric(12, 4), nullable=False),
        sa.Column("description", sa.String(500)),
        sa.Column("state", offer_state, nullable=False, server_default="OK"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("item_id", "url_canonical", "presentation", name="uq_offer_item_url_presentation"),
    )
    op.create_index("idx_offer_state", "offers", ["state"])

    # Pricing runs
    op.create_table(
        "pricing_runs",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("as_of_date", sa.Date, unique=True, nullable=False),
        sa.Column("status", pricing_run_status, nullable=False, server_default="RUNNING"),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True)),
        sa.Column("total_items", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("ok_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("fail_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("skipped_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("pending_count", sa.Integer, nullable=False, server_default=sa.text("0")),
    )

    # Pricing run items
    op.create_table(
        "pricing_run_items",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("run_id", sa.BigInteger, sa.ForeignKey("pricing_runs.id"), nullable=False),
        sa.Column("offer_id", sa.BigInteger, sa.ForeignKey("offers.id"), nullable=False, index=True),
        sa.Column("status", pricing_run_item_status, nullable=False, server_default="PENDING"),
        sa.Column("attempts", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("last_error", sa.Text),
        sa.Column("lease_owner", sa.String(200)),
        sa.Column("lease_expires_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("run_id", "offer_id", name="uq_run_item_run_offer"),
    )
    op.create_index("idx_run_item_due", "pricing_run_items", ["run_id", "status", "attempts"])

    # Daily price points
    op.create_table(
        "daily_price_points",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("item_id", sa.BigInteger, sa.ForeignKey("tracked_items.id"), nullable=False),
        sa.Column("as_of_date", sa.Date, nullable=False),
        sa.Column("presentation", sa.Numeric(12, 4), nullable=False),
        sa.Column("price", sa.Numeric(14, 2), nullable=False),
        sa.Column("source_url", sa.String(1000)),
        sa.Column("offer_id", sa.BigInteger, sa.ForeignKey("offers.id")),
        sa.Column("run_id", sa.BigInteger, sa.ForeignKey("pricing_runs.id")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("item_id", "as_of_date", "presentation", name="uq_price_item_date_presentation"),
    )


def downgrade() -> None:
    op.drop_table("daily_price_points")
    op.drop_index("idx_run_item_due", table_name="pricing_run_items")
    op.drop_table("pricing_run_items")
    op.drop_table("pricing_runs")
    op.drop_index("idx_offer_state", table_name="offers")
    op.drop_table("offers")
    op.drop_table("job_results")
    op.drop_index("idx_job_claim", table_name="jobs")
    op.drop_table("jobs")
    op.drop_index("idx_item_selected_state", table_name="tracked_items")
    op.drop_table("tracked_items")

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
