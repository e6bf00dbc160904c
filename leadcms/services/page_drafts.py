from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from leadcms.auth.dependencies import AuthContext
from leadcms.db.models import PageDraft
from leadcms.db.repositories.page_drafts import PageDraftsRepository

logger = logging.getLogger(__name__)


class PageDraftNotFoundError(RuntimeError):
    pass


class PageDraftAccessDeniedError(RuntimeError):
    pass


class PageTranslationNotFoundError(RuntimeError):
    pass


def authorize_page_draft(session: Session, auth: AuthContext, page_draft_id: int) -> PageDraft:
    draft = PageDraftsRepository(session).get(page_draft_id)
    if not draft or draft.org_id != auth.org_id:
        raise PageDraftNotFoundError("Page draft not found")
    if draft.user_id != auth.user_id:
        logger.warning(
            "Page draft belongs to another user",
            extra={"page_draft_id": page_draft_id, "user_id": auth.user_id},
        )
        raise PageDraftAccessDeniedError("Access to this page draft is denied")
    return draft


def create_page_draft(session: Session, auth: AuthContext, page_translation_id: int) -> PageDraft:
    repo = PageDraftsRepository(session)
    translation = repo.get_translation(org_id=auth.org_id, page_translation_id=page_translation_id)
    if not translation:
        raise PageTranslationNotFoundError("Page translation not found")
    draft = repo.create(org_id=auth.org_id, user_id=auth.user_id, page_translation_id=translation.id)
    logger.info(
        "Created page draft",
        extra={"page_draft_id": draft.id, "page_translation_id": translation.id, "user_id": auth.user_id},
    )
    return draft
