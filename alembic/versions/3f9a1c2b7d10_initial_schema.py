"""initial schema with catalog, delivery queue and preference vectors

Revision ID: 3f9a1c2b7d10
Revises:
Create Date: 2026-10-17 09:12:41.518204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f9a1c2b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

mediakind = postgresql.ENUM('MOVIE', 'TV', name='mediakind', create_type=False)
idsource = postgresql.ENUM('CATALOG', 'LLM', 'HASH', name='idsource', create_type=False)
ratingvalue = postgresql.ENUM(
    'AMAZING', 'GOOD', 'MEH', 'AWFUL', 'NOT_SEEN', 'NOT_INTERESTED',
    name='ratingvalue', create_type=False,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _title_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('kind', mediakind, nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('item_title', sa.String(500), nullable=False),
        sa.Column('item_year', sa.Integer(), nullable=True),
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    bind = op.get_bind()
    for enum_type in (mediakind, idsource, ratingvalue):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('languages', sa.JSON(), nullable=True),
        sa.Column('genre_preferences', sa.JSON(), nullable=True),
        sa.Column('ai_instructions', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'catalog_items',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('kind', mediakind, nullable=False),
        sa.Column('id_source', idsource, nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('original_title', sa.String(500), nullable=True),
        sa.Column('overview', sa.Text(), nullable=True),
        sa.Column('poster_path', sa.String(500), nullable=True),
        sa.Column('backdrop_path', sa.String(500), nullable=True),
        sa.Column('release_date', sa.String(20), nullable=True),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('vote_average', sa.Float(), nullable=True),
        sa.Column('vote_count', sa.Integer(), nullable=True),
        sa.Column('popularity', sa.Float(), nullable=True),
        sa.Column('language', sa.String(10), nullable=True),
        sa.Column('genres', sa.JSON(), nullable=True),
        sa.Column('runtime', sa.Integer(), nullable=True),
        sa.Column('tagline', sa.String(500), nullable=True),
        sa.Column('rt_rating', sa.Float(), nullable=True),
        sa.Column('critic_rating', sa.Float(), nullable=True),
        sa.Column('voter_count', sa.Integer(), nullable=True),
        sa.Column('review_summary', sa.Text(), nullable=True),
        sa.Column('budget', sa.BigInteger(), nullable=True),
        sa.Column('box_office', sa.BigInteger(), nullable=True),
        sa.Column('enriched_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_catalog_title_year', 'catalog_items', ['title', 'year'])

    op.create_table(
        'ratings',
        *_title_columns(),
        sa.Column('value', ratingvalue, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'kind', 'item_id', name='uq_rating_user_kind_item'),
    )
    op.create_index('ix_ratings_user_id', 'ratings', ['user_id'])
    op.create_index('ix_rating_user_kind_created', 'ratings', ['user_id', 'kind', 'created_at'])

    op.create_table(
        'watchlist_entries',
        *_title_columns(),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'kind', 'item_id', name='uq_watchlist_user_kind_item'),
    )
    op.create_index('ix_watchlist_entries_user_id', 'watchlist_entries', ['user_id'])

    op.create_table(
        'skipped_items',
        *_title_columns(),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'kind', 'item_id', name='uq_skipped_user_kind_item'),
    )
    op.create_index('ix_skipped_items_user_id', 'skipped_items', ['user_id'])

    op.create_table(
        'recommendation_batches',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('kind', mediakind, nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('requested_count', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_recommendation_batches_user_id', 'recommendation_batches', ['user_id'])

    op.create_table(
        'recommendation_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('catalog_items.id'), nullable=False),
        sa.Column(
            'batch_id',
            sa.String(36),
            sa.ForeignKey('recommendation_batches.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('match_percentage', sa.Float(), nullable=True),
        sa.Column('shown', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('rated', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_recommendation_records_user_id', 'recommendation_records', ['user_id'])
    op.create_index('ix_recommendation_user_shown', 'recommendation_records', ['user_id', 'shown'])
    op.create_index('ix_recommendation_user_item', 'recommendation_records', ['user_id', 'item_id'])
    op.create_index('ix_recommendation_batch_position', 'recommendation_records', ['batch_id', 'position'])

    op.create_table(
        'preference_vectors',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('preference_type', sa.String(50), nullable=False),
        sa.Column('value', sa.String(500), nullable=False),
        sa.Column('strength', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('embedding', Vector(1536), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'preference_type', 'value', name='uq_preference_user_type_value'),
    )
    op.create_index('ix_preference_vectors_user_id', 'preference_vectors', ['user_id'])

    # Approximate nearest-neighbour index for the <=> cosine distance operator
    op.execute("""
        CREATE INDEX ix_preference_embedding_hnsw
        ON preference_vectors
        USING hnsw (embedding vector_cosine_ops)
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_preference_embedding_hnsw")
    op.drop_table('preference_vectors')
    op.drop_table('recommendation_records')
    op.drop_table('recommendation_batches')
    op.drop_table('skipped_items')
    op.drop_table('watchlist_entries')
    op.drop_table('ratings')
    op.drop_table('catalog_items')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (ratingvalue, idsource, mediakind):
        enum_type.drop(bind, checkfirst=True)
