"""Initial schema: orgs, users, pages, page drafts and module drafts"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    json_type = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")
    page_draft_status = sa.Enum("open", "published", "discarded", name="page_draft_status")
    module_draft_status = sa.Enum("unchanged", "created", "modified", "deleted", name="module_draft_status")

    op.create_table(
        "orgs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.Text(), nullable=True, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("clerk_user_id", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("org_id", "clerk_user_id", name="uq_users_org_clerk_user"),
    )

    op.create_table(
        "pages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "page_translations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("page_id", sa.Integer(), sa.ForeignKey("pages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("language", sa.Text(), nullable=False),
        sa.Column("path", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("page_id", "language", name="uq_page_translations_page_language"),
    )

    op.create_table(
        "page_drafts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "page_translation_id",
            sa.Integer(),
            sa.ForeignKey("page_translations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", page_draft_status, nullable=False, server_default="open"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_page_drafts_org_user", "page_drafts", ["org_id", "user_id"])

    op.create_table(
        "module_drafts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "page_draft_id",
            sa.Integer(),
            sa.ForeignKey("page_drafts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("module_drafts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("original_module_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("settings", json_type, nullable=False),
        sa.Column("sort", sa.Integer(), nullable=False, server_default=sa.text("-1")),
        sa.Column("status", module_draft_status, nullable=False, server_default="created"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_module_drafts_page_draft", "module_drafts", ["page_draft_id"])
    op.create_index("idx_module_drafts_parent", "module_drafts", ["parent_id"])


def downgrade() -> None:
    op.drop_index("idx_module_drafts_parent", table_name="module_drafts")
    op.drop_index("idx_module_drafts_page_draft", table_name="module_drafts")
    op.drop_table("module_drafts")
    op.drop_index("idx_page_drafts_org_user", table_name="page_drafts")
    op.drop_table("page_drafts")
    op.drop_table("page_translations")
    op.drop_table("pages")
    op.drop_table("users")
    op.drop_table("orgs")
    sa.Enum(name="module_draft_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="page_draft_status").drop(op.get_bind(), checkfirst=True)
