"""initial accounts, packages, subscribers and credits schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(), nullable=False, server_default="Active"),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)
    op.create_index("ix_users_status", "users", ["status"], unique=False)
    op.create_index("ix_users_created_by", "users", ["created_by"], unique=False)

    op.create_table(
        "packages",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "subscribers",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("reseller_id", sa.String(), nullable=False),
        sa.Column("subscriber_name", sa.String(), nullable=False),
        sa.Column("serial_number", sa.String(), nullable=False),
        sa.Column("mac_address", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="Fresh"),
        sa.Column("expiry_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("primary_package_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["reseller_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["primary_package_id"], ["packages.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscribers_reseller_id", "subscribers", ["reseller_id"], unique=False)
    op.create_index("ix_subscribers_mac_address", "subscribers", ["mac_address"], unique=False)

    op.create_table(
        "subscriber_packages",
        sa.Column("subscriber_id", sa.String(), nullable=False),
        sa.Column("package_id", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(["subscriber_id"], ["subscribers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["package_id"], ["packages.id"]),
        sa.PrimaryKeyConstraint("subscriber_id", "package_id"),
    )

    op.create_table(
        "credits",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("sender_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount > 0", name="ck_credits_amount_positive"),
    )
    op.create_index("ix_credits_type", "credits", ["type"], unique=False)
    op.create_index("ix_credits_user_id", "credits", ["user_id"], unique=False)
    op.create_index("ix_credits_sender_id", "credits", ["sender_id"], unique=False)
    op.create_index("ix_credits_created_at", "credits", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_credits_created_at", table_name="credits")
    op.drop_index("ix_credits_sender_id", table_name="credits")
    op.drop_index("ix_credits_user_id", table_name="credits")
    op.drop_index("ix_credits_type", table_name="credits")
    op.drop_table("credits")

    op.drop_table("subscriber_packages")

    op.drop_index("ix_subscribers_mac_address", table_name="subscribers")
    op.drop_index("ix_subscribers_reseller_id", table_name="subscribers")
    op.drop_table("subscribers")

    op.drop_table("packages")

    op.drop_index("ix_users_created_by", table_name="users")
    op.drop_index("ix_users_status", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
