"""Add ebook reader state and highlights

Revision ID: d41b8e07a3c5
Revises: 7c1e5a9d2b40
Create Date: 2026-10-19 10:15:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'd41b8e07a3c5'
down_revision = '7c1e5a9d2b40'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('ebook_reader_states',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('active_chapter', sa.Integer(), nullable=False),
        sa.Column('scroll_progress', sa.Integer(), nullable=False),
        sa.Column('font_scale', sa.Float(), nullable=False),
        sa.Column('read_chapters', sa.JSON(), nullable=False),
        sa.Column('completed_modules', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_reader_state_user_product')
    )
    op.create_table('ebook_highlights',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('client_id', sa.String(length=64), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('chapter_index', sa.Integer(), nullable=False),
        sa.Column('paragraph_index', sa.Integer(), nullable=False),
        sa.Column('start_offset', sa.Integer(), nullable=False),
        sa.Column('end_offset', sa.Integer(), nullable=False),
        sa.Column('color', sa.String(length=32), nullable=False),
        sa.Column('selected_text', sa.String(length=500), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_ebook_highlights_user_product', 'ebook_highlights', ['user_id', 'product_id'], unique=False)


def downgrade():
    op.drop_index('ix_ebook_highlights_user_product', table_name='ebook_highlights')
    op.drop_table('ebook_highlights')
    op.drop_table('ebook_reader_states')
