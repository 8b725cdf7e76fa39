"""theme metrics and quarter-over-quarter trends"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_insights"
down_revision = "0001_review_pipeline"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "theme_metrics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "manifest_id",
            sa.Integer(),
            sa.ForeignKey("manifests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("topic_key", sa.String(length=32), nullable=False),
        sa.Column("cluster_id", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("evidence_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("actions_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("computed_version", sa.String(length=32), nullable=False),
        sa.Column("computed_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("manifest_id", "topic_key", name="uq_metric_manifest_topic"),
    )

    op.create_table(
        "theme_trends_qoq",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "current_manifest_id",
            sa.Integer(),
            sa.ForeignKey("manifests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "prev_manifest_id",
            sa.Integer(),
            sa.ForeignKey("manifests.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("business_unit_id", sa.String(), nullable=False),
        sa.Column("topic_key", sa.String(length=32), nullable=False),
        sa.Column("current_name", sa.String(), nullable=False),
        sa.Column("current_severity", sa.String(length=16), nullable=False),
        sa.Column("current_evidence_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_actions_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("prev_name", sa.String(), nullable=True),
        sa.Column("prev_severity", sa.String(length=16), nullable=True),
        sa.Column("prev_evidence_count", sa.Integer(), nullable=True),
        sa.Column("prev_review_count", sa.Integer(), nullable=True),
        sa.Column("prev_actions_count", sa.Integer(), nullable=True),
        sa.Column("delta_reviews", sa.Integer(), nullable=True),
        sa.Column("delta_evidence", sa.Integer(), nullable=True),
        sa.Column("delta_actions", sa.Integer(), nullable=True),
        sa.Column("severity_change", sa.Integer(), nullable=True),
        sa.Column("computed_version", sa.String(length=32), nullable=False),
        sa.Column("computed_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("current_manifest_id", "topic_key", name="uq_trend_manifest_topic"),
    )
    op.create_index(
        "ix_theme_trends_qoq_business_unit_id", "theme_trends_qoq", ["business_unit_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_theme_trends_qoq_business_unit_id", table_name="theme_trends_qoq")
    op.drop_table("theme_trends_qoq")
    op.drop_table("theme_metrics")
