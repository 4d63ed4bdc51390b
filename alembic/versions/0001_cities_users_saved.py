"""Initial schema — cities, users, saved_cities.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "cities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("slug", sa.String(191), nullable=False, unique=True),
        sa.Column("name", sa.String(191), nullable=False),
        sa.Column("country", sa.String(191), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("monthly_cost_usd", sa.Float()),
        sa.Column("avg_pay_rate_usd_hour", sa.Float()),
        sa.Column("weather_avg_temp_c", sa.Float()),
        sa.Column("safety_score", sa.Float()),
        sa.Column("nightlife_rating", sa.Float()),
        sa.Column("transport_rating", sa.Float()),
        sa.Column("housing_studio_usd_month", sa.Float()),
        sa.Column("housing_one_bed_usd_month", sa.Float()),
        sa.Column("housing_coliving_usd_month", sa.Float()),
        sa.Column("climate_avg_temp_c", sa.Float()),
        sa.Column("climate_summary", sa.Text()),
        sa.Column("internet_speed", sa.Float()),
        sa.Column("cost_pct_rent", sa.Float()),
        sa.Column("cost_pct_dining", sa.Float()),
        sa.Column("cost_pct_transport", sa.Float()),
        sa.Column("cost_pct_groceries", sa.Float()),
        sa.Column("cost_pct_coworking", sa.Float()),
        sa.Column("cost_pct_other", sa.Float()),
        sa.Column("travel_flight_from_usd", sa.Float()),
        sa.Column("travel_local_transport_usd_week", sa.Float()),
        sa.Column("travel_hotel_usd_week", sa.Float()),
        sa.Column("lifestyle_tags", sa.Text()),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_cities_country", "cities", ["country"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(24), primary_key=True),
        sa.Column("email", sa.String(191), nullable=False, unique=True),
        sa.Column("display_name", sa.String(128)),
        sa.Column("timezone", sa.String(64)),
        sa.Column("monthly_budget_min_usd", sa.Float()),
        sa.Column("monthly_budget_max_usd", sa.Float()),
        sa.Column("preferred_climate", sa.String(64)),
        sa.Column("lifestyle_priorities", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "saved_cities",
        sa.Column("user_id", sa.String(24), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("city_id", sa.Integer(), sa.ForeignKey("cities.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP")),
    )


def downgrade() -> None:
    op.drop_table("saved_cities")
    op.drop_table("users")
    op.drop_index("ix_cities_country", table_name="cities")
    op.drop_table("cities")
