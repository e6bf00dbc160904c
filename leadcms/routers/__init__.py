from leadcms.routers import modules, page_drafts

__all__ = [
    "modules",
    "page_drafts",
]
