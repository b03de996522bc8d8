"""create organizations, users, memberships, integrations and posts

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("name", sa.VARCHAR(), nullable=False),
        sa.Column("api_key", sa.VARCHAR(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("email", sa.VARCHAR(), nullable=False),
        sa.Column("name", sa.VARCHAR(), nullable=True),
        sa.Column("password", sa.VARCHAR(), nullable=True),
        sa.Column("activated", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_super_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "user_organizations",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("organization_id", sa.VARCHAR(), nullable=False),
        sa.Column("role", sa.VARCHAR(), nullable=False, server_default="ADMIN"),
        sa.Column("disabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "organization_id", name="uq_user_organization"),
    )
    op.create_index("ix_user_organizations_user_id", "user_organizations", ["user_id"])
    op.create_index(
        "ix_user_organizations_organization_id", "user_organizations", ["organization_id"]
    )

    op.create_table(
        "integrations",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("organization_id", sa.VARCHAR(), nullable=False),
        sa.Column("provider_identifier", sa.VARCHAR(), nullable=False),
        sa.Column("name", sa.VARCHAR(), nullable=False, server_default=""),
        sa.Column("type", sa.VARCHAR(), nullable=False, server_default="social"),
        sa.Column("disabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_integrations_organization_id", "integrations", ["organization_id"])

    op.create_table(
        "posts",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("organization_id", sa.VARCHAR(), nullable=False),
        sa.Column("integration_id", sa.VARCHAR(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("publish_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["integration_id"], ["integrations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_posts_organization_id", "posts", ["organization_id"])
    op.create_index("ix_posts_integration_id", "posts", ["integration_id"])
    op.create_index("ix_posts_publish_date", "posts", ["publish_date"])


def downgrade() -> None:
    op.drop_index("ix_posts_publish_date", table_name="posts")
    op.drop_index("ix_posts_integration_id", table_name="posts")
    op.drop_index("ix_posts_organization_id", table_name="posts")
    op.drop_table("posts")
    op.drop_index("ix_integrations_organization_id", table_name="integrations")
    op.drop_table("integrations")
    op.drop_index("ix_user_organizations_organization_id", table_name="user_organizations")
    op.drop_index("ix_user_organizations_user_id", table_name="user_organizations")
    op.drop_table("user_organizations")
    op.drop_table("users")
    op.drop_table("organizations")
