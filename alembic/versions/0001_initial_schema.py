"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
MONEY = sa.Numeric(12, 2)


def upgrade() -> None:
    op.create_table(
        "admins",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=100), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_admins"),
    )
    op.create_index("ix_admins_email", "admins", ["email"], unique=True)
    op.create_index("ix_admins_id", "admins", ["id"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("cash_balance", MONEY, server_default="0", nullable=False),
        sa.Column("ryder_cash", MONEY, server_default="0", nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint("cash_balance >= 0", name="ck_users_cash_balance_non_negative"),
        sa.CheckConstraint("ryder_cash >= 0", name="ck_users_ryder_cash_non_negative"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "competitions",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("ticket_price", MONEY, nullable=False),
        sa.Column("max_tickets", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("prize_value", MONEY, nullable=True),
        sa.Column("has_instant_wins", sa.Boolean(), nullable=False),
        sa.Column("tickets_allocated", sa.Integer(), nullable=False),
        sa.Column("winner_id", ID, nullable=True),
        sa.Column("winning_ticket_number", sa.Integer(), nullable=True),
        sa.Column("draw_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("draw_reference", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("max_tickets > 0", name="ck_competitions_max_tickets_positive"),
        sa.CheckConstraint(
            "ticket_price >= 0", name="ck_competitions_ticket_price_non_negative"
        ),
        sa.CheckConstraint(
            "tickets_allocated >= 0 AND tickets_allocated <= max_tickets",
            name="ck_competitions_tickets_allocated_range",
        ),
        sa.CheckConstraint("end_date > start_date", name="ck_competitions_window_order"),
        sa.ForeignKeyConstraint(
            ["winner_id"],
            ["users.id"],
            name="fk_competitions_winner_id_users",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_competitions"),
        sa.UniqueConstraint("slug", name="uq_competitions_slug"),
    )
    op.create_index("ix_competitions_winner_id", "competitions", ["winner_id"], unique=False)

    op.create_table(
        "entries",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("competition_id", ID, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("total_cost", MONEY, nullable=False),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("payment_reference", sa.String(length=255), nullable=True),
        sa.Column("has_instant_win", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_entries_quantity_positive"),
        sa.CheckConstraint(
            "payment_status IN ('pending','completed','refunded')",
            name="ck_entries_payment_status_enum",
        ),
        sa.CheckConstraint(
            "payment_method IN ('card','ryder_cash')", name="ck_entries_payment_method_enum"
        ),
        sa.ForeignKeyConstraint(
            ["competition_id"],
            ["competitions.id"],
            name="fk_entries_competition_id_competitions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_entries_user_id_users", ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_entries"),
    )
    op.create_index("ix_entries_user_id", "entries", ["user_id"], unique=False)
    op.create_index("ix_entries_competition_id", "entries", ["competition_id"], unique=False)
    op.create_index(
        "ix_entries_competition_status",
        "entries",
        ["competition_id", "payment_status"],
        unique=False,
    )

    op.create_table(
        "entry_tickets",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("competition_id", ID, nullable=False),
        sa.Column("entry_id", ID, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.CheckConstraint("number >= 1", name="ck_entry_tickets_number_positive"),
        sa.ForeignKeyConstraint(
            ["competition_id"],
            ["competitions.id"],
            name="fk_entry_tickets_competition_id_competitions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["entry_id"],
            ["entries.id"],
            name="fk_entry_tickets_entry_id_entries",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_entry_tickets_user_id_users",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_entry_tickets"),
        sa.UniqueConstraint("competition_id", "number", name="uq_entry_ticket_number"),
    )
    op.create_index("ix_entry_tickets_entry_id", "entry_tickets", ["entry_id"], unique=False)
    op.create_index("ix_entry_tickets_user_id", "entry_tickets", ["user_id"], unique=False)

    op.create_table(
        "instant_prizes",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("competition_id", ID, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "prize_type",
            sa.Enum("CASH", "SITE_CREDIT", name="prizetype", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("value", MONEY, nullable=False),
        sa.Column("total_wins", sa.Integer(), nullable=False),
        sa.Column("remaining_wins", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("total_wins > 0", name="ck_instant_prizes_total_wins_positive"),
        sa.CheckConstraint(
            "remaining_wins >= 0 AND remaining_wins <= total_wins",
            name="ck_instant_prizes_remaining_wins_range",
        ),
        sa.CheckConstraint("value > 0", name="ck_instant_prizes_value_positive"),
        sa.ForeignKeyConstraint(
            ["competition_id"],
            ["competitions.id"],
            name="fk_instant_prizes_competition_id_competitions",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_instant_prizes"),
    )
    op.create_index(
        "ix_instant_prizes_competition_id", "instant_prizes", ["competition_id"], unique=False
    )

    op.create_table(
        "instant_win_tickets",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("competition_id", ID, nullable=False),
        sa.Column("ticket_number", sa.Integer(), nullable=False),
        sa.Column("prize_id", ID, nullable=False),
        sa.Column("winner_id", ID, nullable=True),
        sa.Column("winner_name", sa.String(length=100), nullable=True),
        sa.Column("entry_id", ID, nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "ticket_number >= 1", name="ck_instant_win_tickets_ticket_number_positive"
        ),
        sa.ForeignKeyConstraint(
            ["competition_id"],
            ["competitions.id"],
            name="fk_instant_win_tickets_competition_id_competitions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["entry_id"],
            ["entries.id"],
            name="fk_instant_win_tickets_entry_id_entries",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["prize_id"],
            ["instant_prizes.id"],
            name="fk_instant_win_tickets_prize_id_instant_prizes",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["winner_id"],
            ["users.id"],
            name="fk_instant_win_tickets_winner_id_users",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_instant_win_tickets"),
        sa.UniqueConstraint(
            "competition_id", "ticket_number", name="uq_instant_win_ticket_number"
        ),
    )
    op.create_index(
        "ix_instant_win_tickets_prize_id", "instant_win_tickets", ["prize_id"], unique=False
    )
    op.create_index(
        "ix_instant_win_tickets_winner_id", "instant_win_tickets", ["winner_id"], unique=False
    )
    op.create_index(
        "ix_instant_win_tickets_competition_prize",
        "instant_win_tickets",
        ["competition_id", "prize_id"],
        unique=False,
    )

    op.create_table(
        "ryder_cash_transactions",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("balance", MONEY, nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("reference", sa.String(length=255), nullable=True),
        sa.Column("created_by_admin_id", ID, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "type IN ('instant_win','purchase','credit','debit','admin_adjustment')",
            name="ck_ryder_cash_transactions_type_enum",
        ),
        sa.CheckConstraint("amount <> 0", name="ck_ryder_cash_transactions_amount_non_zero"),
        sa.CheckConstraint(
            "balance >= 0", name="ck_ryder_cash_transactions_balance_non_negative"
        ),
        sa.ForeignKeyConstraint(
            ["created_by_admin_id"],
            ["admins.id"],
            name="fk_ryder_cash_transactions_created_by_admin_id_admins",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_ryder_cash_transactions_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_ryder_cash_transactions"),
    )
    op.create_index(
        "ix_ryder_cash_user_created",
        "ryder_cash_transactions",
        ["user_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "withdrawal_requests",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=False),
        sa.Column("payment_details", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("processed_by_admin_id", ID, nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('PENDING','COMPLETED','REJECTED')",
            name="ck_withdrawal_requests_status_enum",
        ),
        sa.CheckConstraint("amount > 0", name="ck_withdrawal_requests_amount_positive"),
        sa.ForeignKeyConstraint(
            ["processed_by_admin_id"],
            ["admins.id"],
            name="fk_withdrawal_requests_processed_by_admin_id_admins",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_withdrawal_requests_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_withdrawal_requests"),
    )
    op.create_index(
        "ix_withdrawal_requests_user_id", "withdrawal_requests", ["user_id"], unique=False
    )
    op.create_index(
        "ix_withdrawal_user_status", "withdrawal_requests", ["user_id", "status"], unique=False
    )

    op.create_table(
        "draw_records",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("draw_reference", sa.String(length=64), nullable=False),
        sa.Column("competition_id", ID, nullable=False),
        sa.Column("total_tickets", sa.Integer(), nullable=False),
        sa.Column("total_participants", sa.Integer(), nullable=False),
        sa.Column("random_index", sa.Integer(), nullable=False),
        sa.Column("winning_ticket_number", sa.Integer(), nullable=False),
        sa.Column("winner_id", ID, nullable=False),
        sa.Column("drawn_by_admin_id", ID, nullable=True),
        sa.Column("drawn_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "random_index >= 0 AND random_index < total_tickets",
            name="ck_draw_records_random_index_range",
        ),
        sa.CheckConstraint(
            "total_participants >= 1", name="ck_draw_records_participants_positive"
        ),
        sa.ForeignKeyConstraint(
            ["competition_id"],
            ["competitions.id"],
            name="fk_draw_records_competition_id_competitions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["drawn_by_admin_id"],
            ["admins.id"],
            name="fk_draw_records_drawn_by_admin_id_admins",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["winner_id"],
            ["users.id"],
            name="fk_draw_records_winner_id_users",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_draw_records"),
        sa.UniqueConstraint("competition_id", name="uq_draw_record_competition"),
        sa.UniqueConstraint("draw_reference", name="uq_draw_record_reference"),
    )
    op.create_index("ix_draw_records_winner_id", "draw_records", ["winner_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_draw_records_winner_id", table_name="draw_records")
    op.drop_table("draw_records")
    op.drop_index("ix_withdrawal_user_status", table_name="withdrawal_requests")
    op.drop_index("ix_withdrawal_requests_user_id", table_name="withdrawal_requests")
    op.drop_table("withdrawal_requests")
    op.drop_index("ix_ryder_cash_user_created", table_name="ryder_cash_transactions")
    op.drop_table("ryder_cash_transactions")
    op.drop_index("ix_instant_win_tickets_competition_prize", table_name="instant_win_tickets")
    op.drop_index("ix_instant_win_tickets_winner_id", table_name="instant_win_tickets")
    op.drop_index("ix_instant_win_tickets_prize_id", table_name="instant_win_tickets")
    op.drop_table("instant_win_tickets")
    op.drop_index("ix_instant_prizes_competition_id", table_name="instant_prizes")
    op.drop_table("instant_prizes")
    op.drop_index("ix_entry_tickets_user_id", table_name="entry_tickets")
    op.drop_index("ix_entry_tickets_entry_id", table_name="entry_tickets")
    op.drop_table("entry_tickets")
    op.drop_index("ix_entries_competition_status", table_name="entries")
    op.drop_index("ix_entries_competition_id", table_name="entries")
    op.drop_index("ix_entries_user_id", table_name="entries")
    op.drop_table("entries")
    op.drop_index("ix_competitions_winner_id", table_name="competitions")
    op.drop_table("competitions")
    op.drop_table("users")
    op.drop_index("ix_admins_id", table_name="admins")
    op.drop_index("ix_admins_email", table_name="admins")
    op.drop_table("admins")
