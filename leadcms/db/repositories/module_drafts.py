from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import select

from leadcms.db.enums import ModuleDraftStatusEnum
from leadcms.db.models import UNSAVED_SORT, ModuleDraft
from leadcms.db.repositories.base import Repository


class ModuleDraftsRepository(Repository):
    def get(self, module_id: int) -> Optional[ModuleDraft]:
        return self.session.get(ModuleDraft, module_id)

    def get_in_draft(self, *, page_draft_id: int, module_id: int) -> Optional[ModuleDraft]:
        stmt = select(ModuleDraft).where(
            ModuleDraft.page_draft_id == page_draft_id,
            ModuleDraft.id == module_id,
        )
        return self.session.scalars(stmt).first()

    def list(self, *, page_draft_id: int, include_deleted: bool = False) -> list[ModuleDraft]:
        stmt = select(ModuleDraft).where(ModuleDraft.page_draft_id == page_draft_id)
        if not include_deleted:
            stmt = stmt.where(ModuleDraft.status != ModuleDraftStatusEnum.deleted)
        stmt = stmt.order_by(ModuleDraft.sort.asc(), ModuleDraft.id.asc())
        return list(self.session.scalars(stmt).all())

    def create(
        self,
        *,
        page_draft_id: int,
        type: str,
        settings: Any,
        parent_id: Optional[int] = None,
        sort: int = UNSAVED_SORT,
        status: ModuleDraftStatusEnum = ModuleDraftStatusEnum.created,
    ) -> ModuleDraft:
        module = ModuleDraft(
            page_draft_id=page_draft_id,
            type=type,
            settings=settings,
            parent_id=parent_id,
            sort=sort,
            status=status,
        )
        return self.save(module)

    def save_all(self, modules: Iterable[ModuleDraft]) -> list[ModuleDraft]:
        """Stage and flush modules so the database assigns their ids; the caller commits."""
        staged = list(modules)
        self.session.add_all(staged)
        self.session.flush()
        return staged
