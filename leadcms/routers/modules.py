from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from leadcms.auth.dependencies import AuthContext, get_current_user
from leadcms.db.deps import get_session
from leadcms.schemas.modules import ModuleCloneRequest, ModuleCloneResponse, ModuleContentResponse
from leadcms.services.module_clone import (
    ModuleAccessDeniedError,
    ModuleCloneStorageError,
    ModuleDraftNotFoundError,
    ParentModuleNotFoundError,
    clone_module_draft,
)
from leadcms.services.module_content import InvalidModuleSettingsError, render_module_content
from leadcms.services.page_drafts import PageDraftAccessDeniedError, PageDraftNotFoundError

router = APIRouter(tags=["modules"])


def _error(status_code: int, code: str, exc: Exception) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": str(exc)})


@router.post(
    "/modules/clone",
    status_code=status.HTTP_201_CREATED,
    response_model=ModuleCloneResponse,
)
@router.post(
    "/moduleClone",
    status_code=status.HTTP_201_CREATED,
    response_model=ModuleCloneResponse,
    include_in_schema=False,
)
def clone_module(
    moduleDraftId: int,
    language: str,
    payload: Optional[ModuleCloneRequest] = Body(default=None),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    payload = payload or ModuleCloneRequest()
    try:
        return clone_module_draft(
            session=session,
            auth=auth,
            module_draft_id=moduleDraftId,
            language=language,
            settings_override=payload.settings,
            target_parent_id=payload.targetParentId,
        )
    except ModuleDraftNotFoundError as exc:
        raise _error(status.HTTP_404_NOT_FOUND, "MODULE_DRAFT_NOT_FOUND", exc) from exc
    except ModuleAccessDeniedError as exc:
        raise _error(status.HTTP_403_FORBIDDEN, "ACCESS_DENIED", exc) from exc
    except ParentModuleNotFoundError as exc:
        raise _error(status.HTTP_404_NOT_FOUND, "PARENT_MODULE_NOT_FOUND", exc) from exc
    except ModuleCloneStorageError as exc:
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "MODULE_CLONE_FAILED", exc) from exc


@router.get("/modules/content", response_model=ModuleContentResponse)
@router.get("/moduleContent", response_model=ModuleContentResponse, include_in_schema=False)
def module_content(
    pageDraftId: int,
    language: str,
    type: str,
    settings: Optional[str] = None,
    id: Optional[int] = None,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    try:
        return render_module_content(
            session=session,
            auth=auth,
            page_draft_id=pageDraftId,
            module_type=type,
            language=language,
            raw_settings=settings,
            module_id=id,
        )
    except InvalidModuleSettingsError as exc:
        raise _error(status.HTTP_400_BAD_REQUEST, "INVALID_SETTINGS", exc) from exc
    except PageDraftNotFoundError as exc:
        raise _error(status.HTTP_404_NOT_FOUND, "PAGE_DRAFT_NOT_FOUND", exc) from exc
    except PageDraftAccessDeniedError as exc:
        raise _error(status.HTTP_403_FORBIDDEN, "ACCESS_DENIED", exc) from exc
    except ModuleDraftNotFoundError as exc:
        raise _error(status.HTTP_404_NOT_FOUND, "MODULE_DRAFT_NOT_FOUND", exc) from exc
