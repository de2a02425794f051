"""seed default achievement catalog

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Inserts only the catalog names that are missing, so re-running against a
partially seeded database is safe.
"""
from alembic import op
from sqlalchemy.orm import Session

from app.services.achievements import DEFAULT_ACHIEVEMENTS, seed_default_achievements

# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    session = Session(bind=op.get_bind())
    seed_default_achievements(session)
    session.flush()


def downgrade() -> None:
    names = ", ".join("'" + row[0].replace("'", "''") + "'" for row in DEFAULT_ACHIEVEMENTS)
    op.execute(
        f"DELETE FROM user_achievements WHERE achievement_id IN "
        f"(SELECT id FROM achievements WHERE name IN ({names}))"
    )
    op.execute(f"DELETE FROM achievements WHERE name IN ({names})")
