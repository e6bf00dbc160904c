from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from leadcms.auth.dependencies import AuthContext, get_current_user
from leadcms.db.deps import get_session
from leadcms.db.repositories.module_drafts import ModuleDraftsRepository
from leadcms.db.repositories.page_drafts import PageDraftsRepository
from leadcms.schemas.modules import PageDraftCreateRequest
from leadcms.services.page_drafts import (
    PageDraftAccessDeniedError,
    PageDraftNotFoundError,
    PageTranslationNotFoundError,
    authorize_page_draft,
    create_page_draft,
)

router = APIRouter(prefix="/page-drafts", tags=["page-drafts"])


def _serialize_module(module) -> dict:
    return {
        "id": module.id,
        "type": module.type,
        "settings": module.settings,
        "parentId": module.parent_id,
        "sort": module.sort,
        "status": module.status.value,
        "originalModuleId": module.original_module_id,
    }


@router.get("")
def list_drafts(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    drafts = PageDraftsRepository(session).list_for_user(org_id=auth.org_id, user_id=auth.user_id)
    return jsonable_encoder(drafts)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_draft(
    payload: PageDraftCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    try:
        draft = create_page_draft(session, auth, payload.pageTranslationId)
    except PageTranslationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "PAGE_TRANSLATION_NOT_FOUND", "message": str(exc)},
        ) from exc
    return jsonable_encoder(draft)


@router.get("/{page_draft_id}/modules")
def list_draft_modules(
    page_draft_id: int,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    try:
        draft = authorize_page_draft(session, auth, page_draft_id)
    except PageDraftNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "PAGE_DRAFT_NOT_FOUND", "message": str(exc)},
        ) from exc
    except PageDraftAccessDeniedError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "ACCESS_DENIED", "message": str(exc)},
        ) from exc
    modules = ModuleDraftsRepository(session).list(page_draft_id=draft.id)
    return [_serialize_module(module) for module in modules]
