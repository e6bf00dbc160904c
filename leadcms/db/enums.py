from enum import Enum


class ModuleDraftStatusEnum(str, Enum):
    unchanged = "unchanged"
    created = "created"
    modified = "modified"
    deleted = "deleted"


class PageDraftStatusEnum(str, Enum):
    open = "open"
    published = "published"
    discarded = "discarded"
