"""reviews, embedding cache, manifests, themes and actions"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_review_pipeline"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reviews",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("product_id", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("normalized_body", sa.Text(), nullable=False),
        sa.Column("body_sha", sa.String(length=64), nullable=False),
        sa.Column("review_date", sa.String(length=32), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("severity", sa.String(length=16), nullable=True),
        sa.Column("source_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_reviews_product_id", "reviews", ["product_id"])
    op.create_index("ix_reviews_body_sha", "reviews", ["body_sha"])
    op.create_index("ix_reviews_product_date", "reviews", ["product_id", "review_date"])

    op.create_table(
        "review_text_embeddings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("body_sha", sa.String(length=64), nullable=False),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("vector", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("body_sha", "model", name="uq_embedding_sha_model"),
    )

    op.create_table(
        "manifests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("business_unit_id", sa.String(), nullable=False),
        sa.Column("period", sa.String(length=16), nullable=False),
        sa.Column("start_date", sa.String(length=10), nullable=False),
        sa.Column("end_date", sa.String(length=10), nullable=False),
        sa.Column("pipeline_version", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="running"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("processed_count", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("business_unit_id", "period", name="uq_manifest_unit_period"),
    )
    op.create_index("ix_manifests_id", "manifests", ["id"])
    op.create_index("ix_manifests_business_unit_id", "manifests", ["business_unit_id"])

    op.create_table(
        "themes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "manifest_id",
            sa.Integer(),
            sa.ForeignKey("manifests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.String(), nullable=False),
        sa.Column("cluster_id", sa.String(length=32), nullable=False),
        sa.Column("topic_key", sa.String(length=32), nullable=False),
        sa.Column("prompt_version", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("evidence_ids", sa.JSON(), nullable=False),
        sa.Column("evidence_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("manifest_id", "cluster_id", name="uq_theme_manifest_cluster"),
    )
    op.create_index("ix_themes_id", "themes", ["id"])
    op.create_index("ix_themes_product_id", "themes", ["product_id"])
    op.create_index("ix_themes_cluster_prompt", "themes", ["cluster_id", "prompt_version"])

    op.create_table(
        "actions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "theme_id",
            sa.Integer(),
            sa.ForeignKey("themes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("normalized_description", sa.Text(), nullable=False),
        sa.Column("impact", sa.Integer(), nullable=False),
        sa.Column("effort", sa.Integer(), nullable=False),
        sa.Column("evidence", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint(
            "theme_id", "normalized_description", name="uq_action_theme_description"
        ),
    )
    op.create_index("ix_actions_id", "actions", ["id"])
    op.create_index("ix_actions_theme_id", "actions", ["theme_id"])

    op.create_table(
        "synthesis_cache",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("prompt_version", sa.Integer(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("entity_id", "prompt_version", name="uq_synthesis_entity_prompt"),
    )


def downgrade() -> None:
    op.drop_table("synthesis_cache")
    op.drop_index("ix_actions_theme_id", table_name="actions")
    op.drop_index("ix_actions_id", table_name="actions")
    op.drop_table("actions")
    op.drop_index("ix_themes_cluster_prompt", table_name="themes")
    op.drop_index("ix_themes_product_id", table_name="themes")
    op.drop_index("ix_themes_id", table_name="themes")
    op.drop_table("themes")
    op.drop_index("ix_manifests_business_unit_id", table_name="manifests")
    op.drop_index("ix_manifests_id", table_name="manifests")
    op.drop_table("manifests")
    op.drop_table("review_text_embeddings")
    op.drop_index("ix_reviews_product_date", table_name="reviews")
    op.drop_index("ix_reviews_body_sha", table_name="reviews")
    op.drop_index("ix_reviews_product_id", table_name="reviews")
    op.drop_table("reviews")
