from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class ModuleCloneRequest(BaseModel):
    # Unsaved editor state of the root module; used only for the root.
    settings: Optional[Any] = None
    targetParentId: Optional[int] = None


class ClonedRootModule(BaseModel):
    id: int
    type: str
    settings: Any


class ClonedModule(BaseModel):
    id: int
    type: str
    settings: Any
    parentId: Optional[int] = None
    sort: int
    status: str
    content: str


class ModuleCloneResponse(BaseModel):
    rootModule: ClonedRootModule
    modules: list[ClonedModule]
    idMapping: dict[str, int]
    styles: str


class ModuleContentResponse(ClonedModule):
    styles: str


class PageDraftCreateRequest(BaseModel):
    pageTranslationId: int
