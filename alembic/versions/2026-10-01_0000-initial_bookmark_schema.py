"""initial_bookmark_schema

Revision ID: 4b1d0c2e9a71
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector

# revision identifiers, used by Alembic.
revision: str = '4b1d0c2e9a71'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_DIMENSION = 768


def upgrade() -> None:
    """
    Create the bookmark schema.

    Tables:
    1. bookmark_task - submitted URLs, doubles as the work queue
    2. bookmark - extracted articles, one per (user, normalized URL)
    3. bookmark_chunk - embedded article slices for RAG
    4. rag_session - questions and answers

    Indexes:
    - partial index on pending task delivery time (dequeue)
    - GIN on bookmark search tokens and tags
    - HNSW (cosine) on chunk embeddings
    """

    # ================================
    # Extensions and types
    # ================================
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')
    op.execute('CREATE EXTENSION IF NOT EXISTS vector')

    task_status = postgresql.ENUM('pending', 'done', 'fail', name='task_status', create_type=False)
    task_status.create(op.get_bind(), checkfirst=True)

    # ================================
    # bookmark_task
    # ================================
    op.create_table(
        'bookmark_task',
        sa.Column('task_id', postgresql.UUID(as_uuid=True), server_default=sa.text('uuid_generate_v4()'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False, comment='Owner of the submission'),
        sa.Column('url', sa.Text(), nullable=False, comment='URL exactly as submitted (normalized later by the processor)'),
        sa.Column('status', task_status, server_default='pending', nullable=False),
        sa.Column('tags', postgresql.ARRAY(sa.Text()), nullable=True, comment='Tags given at submission, copied onto the bookmark'),
        sa.Column('summary', sa.Text(), nullable=True, comment='Summary given at submission, copied onto the bookmark'),
        sa.Column('next_delivery', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='Lease expiry; eligible for dequeue once passed'),
        sa.Column('retries', sa.SmallInteger(), nullable=True, comment='Failed attempts so far (NULL means none)'),
        sa.Column('fail_reason', sa.Text(), nullable=True, comment='Error text of the final attempt once the task is FAIL'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('task_id', name=op.f('pk_bookmark_task')),
    )
    op.create_index('ix_bookmark_task_user_id', 'bookmark_task', ['user_id'])
    op.create_index('ix_bookmark_task_status', 'bookmark_task', ['status'])
    op.create_index(
        'ix_bookmark_task_next_delivery_pending',
        'bookmark_task',
        ['next_delivery'],
        postgresql_where=sa.text("status = 'pending'"),
    )

    # ================================
    # bookmark
    # ================================
    op.create_table(
        'bookmark',
        sa.Column('bookmark_id', sa.String(length=512), nullable=False, comment='Deterministic content hash of the normalized URL'),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('url', sa.Text(), nullable=False, comment='Normalized URL (scheme + host + path)'),
        sa.Column('domain', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('text_content', sa.Text(), nullable=False, comment='Plain text extracted by readability, source for enrichment'),
        sa.Column('tags', postgresql.ARRAY(sa.Text()), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('search_tokens', postgresql.TSVECTOR(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('bookmark_id', 'user_id', name=op.f('pk_bookmark')),
        sa.UniqueConstraint('url', 'user_id', name='bookmark_url_user_unique'),
    )
    op.create_index('ix_bookmark_user_created_at', 'bookmark', ['user_id', sa.text('created_at DESC')])
    op.create_index('ix_bookmark_user_domain', 'bookmark', ['user_id', 'domain'])
    op.create_index('ix_bookmark_search_tokens', 'bookmark', ['search_tokens'], postgresql_using='gin')
    op.create_index('ix_bookmark_tags', 'bookmark', ['tags'], postgresql_using='gin')

    # Search tokens: title (A), text (B), tags (C)
    op.execute("""
        CREATE OR REPLACE FUNCTION update_bookmark_search_tokens()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.search_tokens := setweight(to_tsvector('english', coalesce(NEW.title, '')), 'A') ||
                                 setweight(to_tsvector('english', coalesce(NEW.text_content, '')), 'B') ||
                                 setweight(to_tsvector('english', coalesce(array_to_string(NEW.tags, ' '), '')), 'C');
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)
    op.execute("""
        CREATE TRIGGER update_bookmark_search_tokens_trigger
            BEFORE INSERT OR UPDATE ON bookmark
            FOR EACH ROW EXECUTE FUNCTION update_bookmark_search_tokens()
    """)

    # ================================
    # bookmark_chunk
    # ================================
    op.create_table(
        'bookmark_chunk',
        sa.Column('chunk_id', postgresql.UUID(as_uuid=True), server_default=sa.text('uuid_generate_v4()'), nullable=False),
        sa.Column('bookmark_id', sa.String(length=512), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('chunk_text', sa.Text(), nullable=False),
        sa.Column('chunk_index', sa.Integer(), nullable=False, comment='Order of this chunk within the bookmark (0-indexed)'),
        sa.Column('embedding', Vector(EMBEDDING_DIMENSION), nullable=True, comment='Embedding vector for semantic search'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(
            ['bookmark_id', 'user_id'],
            ['bookmark.bookmark_id', 'bookmark.user_id'],
            name='fk_bookmark_chunk_bookmark',
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('chunk_id', name=op.f('pk_bookmark_chunk')),
        sa.UniqueConstraint('bookmark_id', 'user_id', 'chunk_index', name='bookmark_chunk_unique'),
    )
    op.create_index('ix_bookmark_chunk_bookmark', 'bookmark_chunk', ['bookmark_id', 'user_id'])

    # HNSW index for cosine distance (<=>) nearest-neighbour search
    # m=16 (max connections per layer), ef_construction=64 (quality during build)
    op.execute("""
        CREATE INDEX ix_bookmark_chunk_embedding_hnsw
        ON bookmark_chunk
        USING hnsw (embedding vector_cosine_ops)
        WITH (m = 16, ef_construction = 64)
    """)

    # ================================
    # rag_session
    # ================================
    op.create_table(
        'rag_session',
        sa.Column('session_id', postgresql.UUID(as_uuid=True), server_default=sa.text('uuid_generate_v4()'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('answer', sa.Text(), nullable=True, comment='NULL until the query finished'),
        sa.Column('relevant_chunks', postgresql.ARRAY(postgresql.UUID(as_uuid=True)), server_default=sa.text("'{}'"), nullable=False, comment='Chunk ids used for the answer, most similar first'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('session_id', name=op.f('pk_rag_session')),
    )
    op.create_index('ix_rag_session_user', 'rag_session', ['user_id', sa.text('created_at DESC')])


def downgrade() -> None:
    op.drop_index('ix_rag_session_user', table_name='rag_session')
    op.drop_table('rag_session')

    op.execute('DROP INDEX IF EXISTS ix_bookmark_chunk_embedding_hnsw')
    op.drop_index('ix_bookmark_chunk_bookmark', table_name='bookmark_chunk')
    op.drop_table('bookmark_chunk')

    op.execute('DROP TRIGGER IF EXISTS update_bookmark_search_tokens_trigger ON bookmark')
    op.execute('DROP FUNCTION IF EXISTS update_bookmark_search_tokens()')
    op.drop_index('ix_bookmark_tags', table_name='bookmark')
    op.drop_index('ix_bookmark_search_tokens', table_name='bookmark')
    op.drop_index('ix_bookmark_user_domain', table_name='bookmark')
    op.drop_index('ix_bookmark_user_created_at', table_name='bookmark')
    op.drop_table('bookmark')

    op.drop_index('ix_bookmark_task_next_delivery_pending', table_name='bookmark_task')
    op.drop_index('ix_bookmark_task_status', table_name='bookmark_task')
    op.drop_index('ix_bookmark_task_user_id', table_name='bookmark_task')
    op.drop_table('bookmark_task')

    postgresql.ENUM(name='task_status').drop(op.get_bind(), checkfirst=True)
