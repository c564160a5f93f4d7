"""create profiles, incidents and incident_view

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_profiles_email"), "profiles", ["email"], unique=True)

    op.create_table(
        "incidents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("ACCIDENT", "FIRE", "MEDICAL", "INFRASTRUCTURE", name="incident_type"),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "severity",
            sa.Enum("low", "medium", "high", name="incident_severity"),
            nullable=False,
        ),
        sa.Column("media_url", sa.String(length=1024), nullable=True),
        sa.Column("location_lng", sa.Float(), nullable=False),
        sa.Column("location_lat", sa.Float(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "verified", name="incident_status"),
            nullable=False,
        ),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.execute(
        """
        CREATE VIEW incident_view AS
        SELECT
            id, type, description, severity, media_url, status, internal_notes,
            location_lng, location_lat,
            'POINT(' || location_lng || ' ' || location_lat || ')' AS location_text,
            created_at, updated_at
        FROM incidents
        """
    )


def downgrade() -> None:
    op.execute("DROP VIEW IF EXISTS incident_view")
    op.drop_table("incidents")
    op.drop_index(op.f("ix_profiles_email"), table_name="profiles")
    op.drop_table("profiles")
    sa.Enum(name="incident_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="incident_severity").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="incident_type").drop(op.get_bind(), checkfirst=True)
