"""activity action for reminders sent by staff

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-17 09:00:00.000000

Adds 'reminder_sent' to the activity_action enum for overdue reminders
sent from POST /installments/{id}/send-reminder.
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: str | Sequence[str] | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # A new enum value cannot be used inside the transaction that adds it
    with op.get_context().autocommit_block():
        op.execute("ALTER TYPE activity_action ADD VALUE IF NOT EXISTS 'reminder_sent'")


def downgrade() -> None:
    """Nothing to revert.

    Note: PostgreSQL does not support removing enum values, so
    'reminder_sent' stays on the type, unused.
    """
