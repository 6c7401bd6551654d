"""Lottery schema: members, teesheets, time blocks, lottery entries, profiles, restrictions, run logs

Revision ID: 001_lottery
Revises:
Create Date: 2025-11-01 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_lottery"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "member",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("member_number", sa.String(), nullable=True),
        sa.Column("member_class", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_member_member_number", "member", ["member_number"])

    op.create_table(
        "teesheetconfig",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("config_type", sa.String(), nullable=False),
        sa.Column("start_time", sa.String(), nullable=True),
        sa.Column("end_time", sa.String(), nullable=True),
        sa.Column("interval_minutes", sa.Integer(), nullable=False),
        sa.Column("max_members_per_block", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "teesheet",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("config_id", sa.Integer(), nullable=True),
        sa.Column("lottery_enabled", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["config_id"], ["teesheetconfig.id"]),
        sa.UniqueConstraint("date", name="uq_teesheet_date"),
    )

    op.create_table(
        "timeblock",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("teesheet_id", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("max_members", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["teesheet_id"], ["teesheet.id"]),
    )
    op.create_index("ix_timeblock_teesheet_id", "timeblock", ["teesheet_id"])

    op.create_table(
        "lotteryentry",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lottery_date", sa.Date(), nullable=False),
        sa.Column("member_ids", sa.JSON(), nullable=False),
        sa.Column("organizer_id", sa.Integer(), nullable=False),
        sa.Column("preferred_window", sa.String(), nullable=False),
        sa.Column("alternate_window", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("assigned_time_block_id", sa.Integer(), nullable=True),
        sa.Column("submission_timestamp", sa.DateTime(), nullable=False),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("fairness_recorded", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["organizer_id"], ["member.id"]),
        sa.ForeignKeyConstraint(["assigned_time_block_id"], ["timeblock.id"]),
    )
    op.create_index("ix_lotteryentry_lottery_date", "lotteryentry", ["lottery_date"])
    op.create_index("ix_lotteryentry_organizer_id", "lotteryentry", ["organizer_id"])
    op.create_index("ix_lotteryentry_status", "lotteryentry", ["status"])

    op.create_table(
        "lotteryentryfill",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lottery_entry_id", sa.Integer(), nullable=False),
        sa.Column("fill_type", sa.String(), nullable=False),
        sa.Column("custom_name", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["lottery_entry_id"], ["lotteryentry.id"]),
    )
    op.create_index("ix_lotteryentryfill_lottery_entry_id", "lotteryentryfill", ["lottery_entry_id"])

    op.create_table(
        "timeblockmember",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("time_block_id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("booking_time", sa.Time(), nullable=False),
        sa.Column("lottery_entry_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["time_block_id"], ["timeblock.id"]),
        sa.ForeignKeyConstraint(["member_id"], ["member.id"]),
        sa.ForeignKeyConstraint(["lottery_entry_id"], ["lotteryentry.id"]),
        sa.UniqueConstraint("time_block_id", "member_id", name="uq_time_block_member"),
    )
    op.create_index("ix_timeblockmember_time_block_id", "timeblockmember", ["time_block_id"])
    op.create_index("ix_timeblockmember_member_id", "timeblockmember", ["member_id"])
    op.create_index("ix_timeblockmember_booking_date", "timeblockmember", ["booking_date"])

    op.create_table(
        "timeblockfill",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("time_block_id", sa.Integer(), nullable=False),
        sa.Column("fill_type", sa.String(), nullable=False),
        sa.Column("custom_name", sa.String(), nullable=True),
        sa.Column("lottery_entry_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["time_block_id"], ["timeblock.id"]),
        sa.ForeignKeyConstraint(["lottery_entry_id"], ["lotteryentry.id"]),
    )
    op.create_index("ix_timeblockfill_time_block_id", "timeblockfill", ["time_block_id"])

    op.create_table(
        "memberspeedprofile",
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("average_minutes", sa.Integer(), nullable=True),
        sa.Column("total_minutes", sa.Integer(), nullable=False),
        sa.Column("round_count", sa.Integer(), nullable=False),
        sa.Column("has_data", sa.Boolean(), nullable=False),
        sa.Column("speed_tier", sa.String(), nullable=False),
        sa.Column("manual_override", sa.Boolean(), nullable=False),
        sa.Column("admin_priority_adjustment", sa.Integer(), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("last_calculated", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("member_id"),
        sa.ForeignKeyConstraint(["member_id"], ["member.id"]),
    )
    op.create_index("ix_memberspeedprofile_speed_tier", "memberspeedprofile", ["speed_tier"])

    op.create_table(
        "memberfairnessscore",
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("current_month", sa.String(length=7), nullable=False),
        sa.Column("total_entries_month", sa.Integer(), nullable=False),
        sa.Column("preferences_granted_month", sa.Integer(), nullable=False),
        sa.Column("preference_fulfillment_rate", sa.Float(), nullable=False),
        sa.Column("days_without_good_time", sa.Integer(), nullable=False),
        sa.Column("fairness_score", sa.Integer(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("member_id", "current_month"),
        sa.ForeignKeyConstraint(["member_id"], ["member.id"]),
    )
    op.create_index("ix_memberfairnessscore_fairness_score", "memberfairnessscore", ["fairness_score"])

    op.create_table(
        "lotteryalgorithmconfig",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("fast_threshold_minutes", sa.Integer(), nullable=False),
        sa.Column("average_threshold_minutes", sa.Integer(), nullable=False),
        sa.Column("speed_bonuses", sa.JSON(), nullable=False),
        sa.Column("process_groups_first", sa.Boolean(), nullable=False),
        sa.Column("prefer_best_fit", sa.Boolean(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("updated_by", sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "systemmaintenance",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("maintenance_type", sa.String(), nullable=False),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=False),
        sa.Column("records_affected", sa.Integer(), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("maintenance_type", "month", name="uq_maintenance_type_month"),
    )
    op.create_index("ix_systemmaintenance_maintenance_type", "systemmaintenance", ["maintenance_type"])
    op.create_index("ix_systemmaintenance_month", "systemmaintenance", ["month"])

    op.create_table(
        "timeblockrestriction",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("restriction_category", sa.String(), nullable=False),
        sa.Column("restriction_type", sa.String(), nullable=False),
        sa.Column("member_classes", sa.JSON(), nullable=False),
        sa.Column("start_time", sa.String(), nullable=True),
        sa.Column("end_time", sa.String(), nullable=True),
        sa.Column("days_of_week", sa.JSON(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("max_count", sa.Integer(), nullable=True),
        sa.Column("period_days", sa.Integer(), nullable=True),
        sa.Column("apply_charge", sa.Boolean(), nullable=False),
        sa.Column("charge_amount", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("can_override", sa.Boolean(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_timeblockrestriction_restriction_category", "timeblockrestriction", ["restriction_category"]
    )
    op.create_index("ix_timeblockrestriction_restriction_type", "timeblockrestriction", ["restriction_type"])

    op.create_table(
        "timeblockoverride",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("restriction_id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=True),
        sa.Column("time_block_id", sa.Integer(), nullable=True),
        sa.Column("overridden_by", sa.String(length=100), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["restriction_id"], ["timeblockrestriction.id"]),
        sa.ForeignKeyConstraint(["member_id"], ["member.id"]),
        sa.ForeignKeyConstraint(["time_block_id"], ["timeblock.id"]),
    )
    op.create_index("ix_timeblockoverride_restriction_id", "timeblockoverride", ["restriction_id"])

    op.create_table(
        "lotteryprocessingrun",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lottery_date", sa.Date(), nullable=False),
        sa.Column("processed_at", sa.DateTime(), nullable=False),
        sa.Column("total_entries", sa.Integer(), nullable=False),
        sa.Column("assigned_count", sa.Integer(), nullable=False),
        sa.Column("unplaced_count", sa.Integer(), nullable=False),
        sa.Column("group_count", sa.Integer(), nullable=False),
        sa.Column("individual_count", sa.Integer(), nullable=False),
        sa.Column("violation_count", sa.Integer(), nullable=False),
        sa.Column("charge_count", sa.Integer(), nullable=False),
        sa.Column("failed_count", sa.Integer(), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lotteryprocessingrun_lottery_date", "lotteryprocessingrun", ["lottery_date"])
    op.create_index("ix_lotteryprocessingrun_processed_at", "lotteryprocessingrun", ["processed_at"])

    op.create_table(
        "lotteryprocessingentrylog",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("run_id", sa.Integer(), nullable=False),
        sa.Column("entry_id", sa.Integer(), nullable=False),
        sa.Column("entry_type", sa.String(), nullable=False),
        sa.Column("preferred_window", sa.String(), nullable=True),
        sa.Column("alternate_window", sa.String(), nullable=True),
        sa.Column("assigned_time_block_id", sa.Integer(), nullable=True),
        sa.Column("assigned_start_time", sa.String(), nullable=True),
        sa.Column("assignment_reason", sa.String(), nullable=False),
        sa.Column("violated_restrictions", sa.Boolean(), nullable=False),
        sa.Column("restriction_details", sa.JSON(), nullable=True),
        sa.Column("priority_score", sa.Integer(), nullable=False),
        sa.Column("fairness_score_before", sa.Integer(), nullable=True),
        sa.Column("fairness_score_after", sa.Integer(), nullable=True),
        sa.Column("preference_granted", sa.Boolean(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["run_id"], ["lotteryprocessingrun.id"]),
        sa.ForeignKeyConstraint(["entry_id"], ["lotteryentry.id"]),
        sa.ForeignKeyConstraint(["assigned_time_block_id"], ["timeblock.id"]),
    )
    op.create_index("ix_lotteryprocessingentrylog_run_id", "lotteryprocessingentrylog", ["run_id"])
    op.create_index("ix_lotteryprocessingentrylog_entry_id", "lotteryprocessingentrylog", ["entry_id"])


def downgrade() -> None:
    op.drop_table("lotteryprocessingentrylog")
    op.drop_table("lotteryprocessingrun")
    op.drop_table("timeblockoverride")
    op.drop_table("timeblockrestriction")
    op.drop_table("systemmaintenance")
    op.drop_table("lotteryalgorithmconfig")
    op.drop_table("memberfairnessscore")
    op.drop_table("memberspeedprofile")
    op.drop_table("timeblockfill")
    op.drop_table("timeblockmember")
    op.drop_table("lotteryentryfill")
    op.drop_table("lotteryentry")
    op.drop_table("timeblock")
    op.drop_table("teesheet")
    op.drop_table("teesheetconfig")
    op.drop_table("member")
