"""Create contacts table

Revision ID: 4c1e7a9b2d10
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = '4c1e7a9b2d10'
down_revision = None
branch_labels = None
depends_on = None


def _is_postgresql():
    return op.get_bind().dialect.name == 'postgresql'


def upgrade():
    ip_type = postgresql.INET() if _is_postgresql() else sa.String(length=45)

    op.create_table(
        'contacts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('ip_address', ip_type, nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name='pk_contacts'),
    )
    op.create_index('idx_contacts_email', 'contacts', ['email'])
    op.create_index('idx_contacts_created_at', 'contacts', [sa.text('created_at DESC')])

    if not _is_postgresql():
        return

    # updated_at se refresca en cada UPDATE aunque no pase por el ORM
    op.execute(
        """
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = CURRENT_TIMESTAMP;
            RETURN NEW;
        END;
        $$ language 'plpgsql';
        """
    )
    op.execute(
        """
        CREATE TRIGGER update_contacts_updated_at
            BEFORE UPDATE ON contacts
            FOR EACH ROW
            EXECUTE FUNCTION update_updated_at_column();
        """
    )
    op.execute(
        """
        CREATE OR REPLACE VIEW contacts_summary AS
        SELECT
            DATE(created_at) AS date,
            COUNT(*) AS total_contacts,
            COUNT(DISTINCT email) AS unique_emails
        FROM contacts
        GROUP BY DATE(created_at)
        ORDER BY date DESC;
        """
    )


def downgrade():
    if _is_postgresql():
        op.execute('DROP VIEW IF EXISTS contacts_summary')
        op.execute('DROP TRIGGER IF EXISTS update_contacts_updated_at ON contacts')
        op.execute('DROP FUNCTION IF EXISTS update_updated_at_column()')
    op.drop_index('idx_contacts_created_at', table_name='contacts')
    op.drop_index('idx_contacts_email', table_name='contacts')
    op.drop_table('contacts')
