from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from leadcms.db.base import Base
from leadcms.db.enums import ModuleDraftStatusEnum, PageDraftStatusEnum

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite for local runs and tests).
JSONType = sa.JSON().with_variant(JSONB(), "postgresql")

# Sort value of a module that exists only as an editor preview and has not been
# placed by the user yet.
UNSAVED_SORT = -1


class Org(Base):
    __tablename__ = "orgs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[Optional[str]] = mapped_column(Text, unique=True, nullable=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("org_id", "clerk_user_id", name="uq_users_org_clerk_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False)
    clerk_user_id: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Page(Base):
    __tablename__ = "pages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class PageTranslation(Base):
    __tablename__ = "page_translations"
    __table_args__ = (UniqueConstraint("page_id", "language", name="uq_page_translations_page_language"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    page_id: Mapped[int] = mapped_column(ForeignKey("pages.id", ondelete="CASCADE"), nullable=False)
    language: Mapped[str] = mapped_column(Text, nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class PageDraft(Base):
    __tablename__ = "page_drafts"
    __table_args__ = (sa.Index("idx_page_drafts_org_user", "org_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    page_translation_id: Mapped[int] = mapped_column(
        ForeignKey("page_translations.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[PageDraftStatusEnum] = mapped_column(
        Enum(PageDraftStatusEnum, name="page_draft_status"),
        nullable=False,
        server_default=PageDraftStatusEnum.open.value,
        default=PageDraftStatusEnum.open,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class ModuleDraft(Base):
    __tablename__ = "module_drafts"
    __table_args__ = (
        sa.Index("idx_module_drafts_page_draft", "page_draft_id"),
        sa.Index("idx_module_drafts_parent", "parent_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    page_draft_id: Mapped[int] = mapped_column(
        ForeignKey("page_drafts.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("module_drafts.id", ondelete="SET NULL"), nullable=True
    )
    original_module_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    settings: Mapped[Any] = mapped_column(JSONType, nullable=False, default=dict)
    sort: Mapped[int] = mapped_column(Integer, nullable=False, default=UNSAVED_SORT)
    status: Mapped[ModuleDraftStatusEnum] = mapped_column(
        Enum(ModuleDraftStatusEnum, name="module_draft_status"),
        nullable=False,
        server_default=ModuleDraftStatusEnum.created.value,
        default=ModuleDraftStatusEnum.created,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @property
    def is_unsaved(self) -> bool:
        return self.sort == UNSAVED_SORT
