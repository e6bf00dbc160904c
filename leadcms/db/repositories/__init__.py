from leadcms.db.repositories.orgs import OrgsRepository, UsersRepository
from leadcms.db.repositories.page_drafts import PageDraftsRepository
from leadcms.db.repositories.module_drafts import ModuleDraftsRepository

__all__ = [
    "OrgsRepository",
    "UsersRepository",
    "PageDraftsRepository",
    "ModuleDraftsRepository",
]
