"""audit_log_immutability

Revision ID: 7e3f9a1b4c28
Revises: 5a1c2e7b9d01
Create Date: 2026-10-19 09:10:00.000000

Append-only audit trail: the application role may read and insert
approval history, never rewrite or remove it.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '7e3f9a1b4c28'
down_revision: Union[str, None] = '5a1c2e7b9d01'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("REVOKE UPDATE, DELETE ON audit_logs FROM PUBLIC;")
    op.execute("GRANT SELECT, INSERT ON audit_logs TO PUBLIC;")


def downgrade() -> None:
    op.execute("GRANT UPDATE, DELETE ON audit_logs TO PUBLIC;")
