from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leadcms.auth.dependencies import AuthContext
from leadcms.db.enums import ModuleDraftStatusEnum
from leadcms.db.models import UNSAVED_SORT, ModuleDraft, PageDraft
from leadcms.db.repositories.module_drafts import ModuleDraftsRepository
from leadcms.db.repositories.page_drafts import PageDraftsRepository
from leadcms.services.module_references import extract_child_ids, rewrite_settings
from leadcms.services.module_render import ModuleRenderer, default_renderer

logger = logging.getLogger(__name__)


class ModuleDraftNotFoundError(RuntimeError):
    pass


class ModuleAccessDeniedError(RuntimeError):
    pass


class ParentModuleNotFoundError(RuntimeError):
    pass


class ModuleCloneStorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class CollectedModule:
    module: ModuleDraft
    # Settings used to find this module's children; the override for the root,
    # persisted settings for everything below it.
    settings: Any
    # Id of the module whose settings referenced this one; None for the root.
    discovered_from: Optional[int] = None


def authorize_module_draft(session: Session, auth: AuthContext, module_draft_id: int) -> tuple[ModuleDraft, PageDraft]:
    module = ModuleDraftsRepository(session).get(module_draft_id)
    if not module:
        raise ModuleDraftNotFoundError("Module draft not found")
    draft = PageDraftsRepository(session).get(module.page_draft_id)
    if not draft or draft.org_id != auth.org_id:
        raise ModuleDraftNotFoundError("Module draft not found")
    if draft.user_id != auth.user_id:
        logger.warning(
            "Module draft belongs to another user's page draft",
            extra={"module_draft_id": module_draft_id, "page_draft_id": draft.id, "user_id": auth.user_id},
        )
        raise ModuleAccessDeniedError("Access to this module draft is denied")
    return module, draft


def collect_module_tree(
    repo: ModuleDraftsRepository,
    root: ModuleDraft,
    root_settings_override: Any = None,
) -> list[CollectedModule]:
    """Breadth-first walk from ``root`` through the child references in module settings.

    The root comes first, each module appears once, and children are only
    looked up inside the root's page draft. References that resolve to nothing
    are skipped.
    """
    root_settings = root.settings if root_settings_override is None else root_settings_override
    collected = [CollectedModule(module=root, settings=root_settings)]
    visited = {root.id}
    dangling: set[int] = set()
    queue = deque(collected)
    while queue:
        current = queue.popleft()
        for child_id in extract_child_ids(current.module.type, current.settings):
            if child_id in visited or child_id in dangling:
                continue
            child = repo.get_in_draft(page_draft_id=root.page_draft_id, module_id=child_id)
            if child is None:
                logger.debug(
                    "Skipping dangling module reference",
                    extra={"module_draft_id": current.module.id, "child_id": child_id},
                )
                dangling.add(child_id)
                continue
            visited.add(child_id)
            entry = CollectedModule(module=child, settings=child.settings, discovered_from=current.module.id)
            collected.append(entry)
            queue.append(entry)
    return collected


class IdRemapper:
    """Allocates one database identity per collected module and maps old ids onto them."""

    def __init__(self, repo: ModuleDraftsRepository) -> None:
        self.repo = repo
        self._mapping: dict[int, int] = {}
        self._clones: dict[int, ModuleDraft] = {}

    def allocate(self, collected: list[CollectedModule], *, page_draft_id: int) -> None:
        placeholders = [
            ModuleDraft(
                page_draft_id=page_draft_id,
                type=entry.module.type,
                settings={},
                sort=UNSAVED_SORT,
                status=ModuleDraftStatusEnum.created,
            )
            for entry in collected
        ]
        self.repo.save_all(placeholders)
        for entry, clone in zip(collected, placeholders):
            self._mapping[entry.module.id] = clone.id
            self._clones[entry.module.id] = clone

    def map_of(self, old_id: int) -> int:
        return self._mapping[old_id]

    def clone_of(self, old_id: int) -> ModuleDraft:
        return self._clones[old_id]

    @property
    def mapping(self) -> dict[int, int]:
        return dict(self._mapping)


class CloneWriter:
    def __init__(self, repo: ModuleDraftsRepository) -> None:
        self.repo = repo

    def write(
        self,
        rewritten: list[tuple[CollectedModule, Any]],
        remapper: IdRemapper,
        *,
        target_parent_id: Optional[int] = None,
    ) -> list[ModuleDraft]:
        clones: list[ModuleDraft] = []
        for entry, new_settings in rewritten:
            clone = remapper.clone_of(entry.module.id)
            clone.type = entry.module.type
            clone.settings = new_settings
            if entry.discovered_from is None:
                clone.parent_id = target_parent_id
            else:
                clone.parent_id = remapper.map_of(entry.discovered_from)
            clone.original_module_id = None
            clone.sort = UNSAVED_SORT
            clone.status = ModuleDraftStatusEnum.created
            clones.append(clone)
        return self.repo.save_all(clones)


def serialize_module(module: ModuleDraft, content: str) -> dict[str, Any]:
    return {
        "id": module.id,
        "type": module.type,
        "settings": module.settings,
        "parentId": module.parent_id,
        "sort": module.sort,
        "status": module.status.value,
        "content": content,
    }


class ResultAssembler:
    def __init__(self, renderer: ModuleRenderer) -> None:
        self.renderer = renderer

    def assemble(self, clones: list[ModuleDraft], id_mapping: dict[int, int], language: str) -> dict[str, Any]:
        modules = []
        styles = []
        for clone in clones:
            rendered = self.renderer.render(clone.type, clone.settings, language, module_id=clone.id)
            modules.append(serialize_module(clone, rendered.content))
            if rendered.styles:
                styles.append(rendered.styles)
        root = modules[0]
        return {
            "rootModule": {"id": root["id"], "type": root["type"], "settings": root["settings"]},
            "modules": modules,
            "idMapping": {str(old_id): new_id for old_id, new_id in id_mapping.items()},
            "styles": "\n".join(styles),
        }


def clone_module_draft(
    *,
    session: Session,
    auth: AuthContext,
    module_draft_id: int,
    language: str,
    settings_override: Any = None,
    target_parent_id: Optional[int] = None,
    renderer: Optional[ModuleRenderer] = None,
) -> dict[str, Any]:
    repo = ModuleDraftsRepository(session)
    root, draft = authorize_module_draft(session, auth, module_draft_id)

    if target_parent_id is not None:
        parent = repo.get_in_draft(page_draft_id=draft.id, module_id=target_parent_id)
        if not parent:
            raise ParentModuleNotFoundError("Target parent module not found")

    collected = collect_module_tree(repo, root, settings_override)
    remapper = IdRemapper(repo)
    try:
        with repo.transaction():
            remapper.allocate(collected, page_draft_id=draft.id)
            id_map = remapper.mapping
            rewritten = [
                (entry, rewrite_settings(entry.module.type, entry.settings, id_map)) for entry in collected
            ]
            clones = CloneWriter(repo).write(rewritten, remapper, target_parent_id=target_parent_id)
    except SQLAlchemyError as exc:
        logger.exception(
            "Module clone failed; transaction rolled back",
            extra={"module_draft_id": module_draft_id, "module_count": len(collected)},
        )
        raise ModuleCloneStorageError("Failed to persist cloned modules") from exc

    logger.info(
        "Cloned module tree",
        extra={
            "module_draft_id": module_draft_id,
            "clone_id": remapper.map_of(root.id),
            "module_count": len(clones),
            "page_draft_id": draft.id,
        },
    )
    return ResultAssembler(renderer or default_renderer).assemble(clones, remapper.mapping, language)
