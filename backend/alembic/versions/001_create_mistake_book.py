"""Create mistake_book table

Revision ID: 001
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'mistake_book',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('storage_path', sa.String, nullable=False),
        sa.Column('file_name', sa.String, nullable=False, server_default=''),
        sa.Column('question_id', sa.Integer, nullable=False),
        sa.Column('question', sa.Text, nullable=False),
        sa.Column('options', postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('answer', sa.Text, nullable=False),
        sa.Column('wrong_count', sa.Integer, nullable=False, server_default='1'),
        sa.Column('correct_streak', sa.Integer, nullable=False, server_default='0'),
        sa.Column('mastered', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('storage_path', 'question_id', name='uq_mistake_book_path_question'),
        sa.CheckConstraint('correct_streak >= 0', name='ck_mistake_book_streak_non_negative'),
        sa.CheckConstraint('wrong_count >= 0', name='ck_mistake_book_wrong_non_negative'),
    )

    # Active review reads filter on mastered and order by created_at
    op.create_index('ix_mistake_book_mastered_created', 'mistake_book', ['mastered', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_mistake_book_mastered_created', table_name='mistake_book')
    op.drop_table('mistake_book')
