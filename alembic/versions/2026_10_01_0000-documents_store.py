"""Document store - single collection-keyed JSON table.

Revision ID: documents_store
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'documents_store'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'documents',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('collection', sa.String(length=100), nullable=False),
        sa.Column('data', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_documents_collection', 'documents', ['collection'], unique=False)
    op.create_index('ix_documents_collection_created', 'documents', ['collection', 'created_at'], unique=False)

    # Status sweeps over tenders and contracts
    op.execute(
        "CREATE INDEX ix_documents_data_status ON documents ((data ->> 'status')) "
        "WHERE collection IN ('tenders', 'contracts')"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_documents_data_status")
    op.drop_index('ix_documents_collection_created', table_name='documents')
    op.drop_index('ix_documents_collection', table_name='documents')
    op.drop_table('documents')
