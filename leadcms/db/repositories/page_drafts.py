from typing import Optional
from sqlalchemy import select
from sqlalchemy.orm import Session

from leadcms.db.models import Page, PageDraft, PageTranslation


class PageDraftsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, page_draft_id: int) -> Optional[PageDraft]:
        return self.session.get(PageDraft, page_draft_id)

    def get_translation(self, *, org_id: int, page_translation_id: int) -> Optional[PageTranslation]:
        stmt = (
            select(PageTranslation)
            .join(Page, Page.id == PageTranslation.page_id)
            .where(Page.org_id == org_id, PageTranslation.id == page_translation_id)
        )
        return self.session.scalars(stmt).first()

    def list_for_user(self, *, org_id: int, user_id: int) -> list[PageDraft]:
        stmt = (
            select(PageDraft)
            .where(PageDraft.org_id == org_id, PageDraft.user_id == user_id)
            .order_by(PageDraft.created_at.desc(), PageDraft.id.desc())
        )
        return list(self.session.scalars(stmt).all())

    def create(self, *, org_id: int, user_id: int, page_translation_id: int) -> PageDraft:
        draft = PageDraft(org_id=org_id, user_id=user_id, page_translation_id=page_translation_id)
        self.session.add(draft)
        self.session.commit()
        self.session.refresh(draft)
        return draft
