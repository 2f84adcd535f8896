"""Create users, services_animaliers and favorites tables

Revision ID: 001
Revises: None
Create Date: 2024-06-10 00:00:00.000000+00:00

What:  Initial schema: accounts, the service catalog, and the favorites
       edge between them.
Constraints:
    - users.email UNIQUE (stored lower-cased by the application)
    - favorites (user_id, service_id) UNIQUE
    - favorites foreign keys ON DELETE CASCADE on both sides

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "email",
            sa.String(255),
            nullable=False,
            comment="Lower-cased email address, unique",
        ),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "services_animaliers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("nom", sa.String(255), nullable=False),
        sa.Column(
            "type",
            sa.String(50),
            nullable=False,
            comment="vet, grooming, boarding, training, walking, other",
        ),
        sa.Column("ville", sa.String(255), nullable=False),
        sa.Column("tarifs", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "services",
            sa.Text(),
            nullable=True,
            comment="Free-text description of the services offered",
        ),
        sa.Column("horaires", sa.Text(), nullable=True),
        sa.Column("statut", sa.String(20), nullable=False, server_default=sa.text("'en_attente'")),
        sa.Column("image", sa.String(1024), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    # Every list/search query orders by created_at DESC
    op.create_index(
        "idx_services_created_at",
        "services_animaliers",
        [sa.text("created_at DESC")],
    )
    op.create_index("idx_services_type", "services_animaliers", ["type"])

    op.create_table(
        "favorites",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["service_id"], ["services_animaliers.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "service_id", name="uq_favorites_user_service"),
    )
    op.create_index(
        "idx_favorites_user_created",
        "favorites",
        ["user_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_favorites_user_created", table_name="favorites")
    op.drop_table("favorites")
    op.drop_index("idx_services_type", table_name="services_animaliers")
    op.drop_index("idx_services_created_at", table_name="services_animaliers")
    op.drop_table("services_animaliers")
    op.drop_table("users")
