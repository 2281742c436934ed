"""baseline schema

Revision ID: 20260301_0001_baseline_schema
Revises: None
Create Date: 2026-03-01
"""
from alembic import op

from tradeops import models  # noqa: F401
from tradeops.database import Base

# revision identifiers, used by Alembic.
revision = "20260301_0001_baseline_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Later revisions must spell out their DDL; only the baseline mirrors the models.
    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
