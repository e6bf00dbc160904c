from __future__ import annotations

import json
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from leadcms.auth.dependencies import AuthContext
from leadcms.db.enums import ModuleDraftStatusEnum
from leadcms.db.models import UNSAVED_SORT
from leadcms.db.repositories.module_drafts import ModuleDraftsRepository
from leadcms.services.module_clone import ModuleDraftNotFoundError, serialize_module
from leadcms.services.module_render import ModuleRenderer, default_renderer
from leadcms.services.page_drafts import authorize_page_draft

logger = logging.getLogger(__name__)


class InvalidModuleSettingsError(ValueError):
    pass


def parse_settings(raw: Optional[str]) -> Any:
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidModuleSettingsError("Module settings must be valid JSON") from exc
    # Editors serialise an empty settings object as an empty list.
    if parsed == []:
        return {}
    if not isinstance(parsed, dict):
        raise InvalidModuleSettingsError("Module settings must be a JSON object")
    return parsed


def render_module_content(
    *,
    session: Session,
    auth: AuthContext,
    page_draft_id: int,
    module_type: str,
    language: str,
    raw_settings: Optional[str],
    module_id: Optional[int] = None,
    renderer: Optional[ModuleRenderer] = None,
) -> dict[str, Any]:
    """Create a preview module, or update an existing one, and render it.

    New modules are unsaved (``sort = -1``) until the editor places them.
    """
    draft = authorize_page_draft(session, auth, page_draft_id)
    settings = parse_settings(raw_settings)
    repo = ModuleDraftsRepository(session)

    if module_id is None:
        module = repo.create(
            page_draft_id=draft.id,
            type=module_type,
            settings=settings,
            sort=UNSAVED_SORT,
            status=ModuleDraftStatusEnum.created,
        )
        logger.debug("Created preview module", extra={"module_draft_id": module.id, "type": module_type})
    else:
        module = repo.get_in_draft(page_draft_id=draft.id, module_id=module_id)
        if not module or module.status == ModuleDraftStatusEnum.deleted:
            raise ModuleDraftNotFoundError("Module draft not found")
        module.settings = settings
        if module.status == ModuleDraftStatusEnum.unchanged:
            module.status = ModuleDraftStatusEnum.modified
        module = repo.save(module)

    rendered = (renderer or default_renderer).render(module.type, module.settings, language, module_id=module.id)
    return {**serialize_module(module, rendered.content), "styles": rendered.styles}
