from leadcms.schemas.modules import (
    ModuleCloneRequest,
    ModuleCloneResponse,
    ModuleContentResponse,
    PageDraftCreateRequest,
)

__all__ = [
    "ModuleCloneRequest",
    "ModuleCloneResponse",
    "ModuleContentResponse",
    "PageDraftCreateRequest",
]
