from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from leadcms.config import settings as app_settings
from leadcms.services.module_references import coerce_module_id

logger = logging.getLogger(__name__)

LINK_INLINE_STYLE = "display: inline-flex; align-items: center; gap: 0.35em; text-decoration: none;"

_STYLE_PROPERTIES = {
    "backgroundColor": "background-color",
    "color": "color",
    "padding": "padding",
    "margin": "margin",
    "textAlign": "text-align",
    "fontSize": "font-size",
}
_UNSAFE_CSS_VALUE = re.compile(r"[;{}<>]")


@dataclass(frozen=True)
class RenderedModule:
    content: str
    styles: str = ""


# (settings, language) -> inner markup
RenderFn = Callable[[dict[str, Any], str], str]


def _esc(value: Any) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def _parse_json_value(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None
    return value


def _as_settings(settings: Any) -> dict[str, Any]:
    parsed = _parse_json_value(settings)
    return parsed if isinstance(parsed, dict) else {}


def _child_placeholders(child_ids: Any) -> str:
    if not isinstance(child_ids, list):
        return ""
    refs = []
    for value in child_ids:
        module_id = coerce_module_id(value)
        if module_id is not None:
            refs.append(f'<div class="cms-module-ref" data-module-ref="{module_id}"></div>')
    return "".join(refs)


def _icon_class(icon: str) -> str:
    icon = icon.strip()
    if icon.startswith("bi "):
        return icon
    return f"bi bi-{icon}"


def _render_text(settings: dict[str, Any], language: str) -> str:
    content = settings.get("content")
    if isinstance(content, dict):
        content = (
            content.get(language)
            or content.get(app_settings.DEFAULT_LANGUAGE)
            or next((v for v in content.values() if isinstance(v, str)), "")
        )
    if not isinstance(content, str) or not content.strip():
        return '<div class="cms-text"></div>'
    # Text content is authored rich HTML and is emitted as stored.
    return f'<div class="cms-text">{content}</div>'


def _link_value(settings: dict[str, Any]) -> dict[str, Any]:
    if "link" not in settings:
        # Older modules kept the link fields at the top level.
        legacy_keys = ("text", "url", "icon", "iconPosition", "target")
        if any(key in settings for key in legacy_keys):
            return {key: settings[key] for key in legacy_keys if key in settings}
        return {}
    link = _parse_json_value(settings.get("link"))
    if isinstance(link, dict) and "value" in link and "text" not in link:
        link = _parse_json_value(link.get("value"))
    return link if isinstance(link, dict) else {}


def _link_href(url: Any) -> str:
    if isinstance(url, str):
        return url
    if not isinstance(url, dict):
        return ""
    if url.get("type") == "page":
        slug = url.get("pageSlug")
        return slug if isinstance(slug, str) and slug else "/"
    value = url.get("url")
    return value if isinstance(value, str) else ""


def _render_link(settings: dict[str, Any], _language: str) -> str:
    link = _link_value(settings)
    text = link.get("text") if isinstance(link.get("text"), str) else ""
    href = _link_href(link.get("url"))
    target = link.get("target") if link.get("target") in ("_self", "_blank") else "_self"
    icon = link.get("icon") if isinstance(link.get("icon"), str) else ""
    icon_position = "right" if link.get("iconPosition") == "right" else "left"

    attrs = [f'href="{_esc(href)}"', f'target="{target}"']
    if target == "_blank":
        attrs.append('rel="noopener noreferrer"')
    attrs.append(f'style="{LINK_INLINE_STYLE}"')

    icon_html = ""
    if icon.strip():
        icon_html = f'<span class="link-icon"><i class="{_esc(_icon_class(icon))}"></i></span>'
    text_html = f'<span class="link-text">{_esc(text)}</span>'
    inner = text_html + icon_html if icon_position == "right" else icon_html + text_html
    return f'<a {" ".join(attrs)}>{inner}</a>'


def _render_icon(settings: dict[str, Any], _language: str) -> str:
    icon = settings.get("icon") if isinstance(settings.get("icon"), str) else ""
    style = ""
    size = settings.get("size")
    if isinstance(size, (str, int)) and str(size).strip() and not _UNSAFE_CSS_VALUE.search(str(size)):
        style = f' style="font-size: {_esc(size)};"'
    if not icon.strip():
        return f'<i class="bi"{style}></i>'
    return f'<i class="{_esc(_icon_class(icon))}"{style}></i>'


def _render_row(settings: dict[str, Any], _language: str) -> str:
    columns = settings.get("columns")
    parts = ['<div class="row">']
    if isinstance(columns, list):
        for column in columns:
            column = column if isinstance(column, dict) else {}
            xs = column.get("xs")
            css_class = f"col-{_esc(xs)}" if isinstance(xs, (str, int)) and str(xs).strip() else "col"
            parts.append(f'<div class="{css_class}">{_child_placeholders(column.get("modules"))}</div>')
    parts.append("</div>")
    return "".join(parts)


def _render_tabs(settings: dict[str, Any], _language: str) -> str:
    tabs = settings.get("tabs")
    tabs = [tab for tab in tabs if isinstance(tab, dict)] if isinstance(tabs, list) else []
    nav = []
    panels = []
    for index, tab in enumerate(tabs):
        tab_id = _esc(tab.get("id") or f"tab{index + 1}")
        active = " active" if index == 0 else ""
        nav.append(
            f'<li class="nav-item"><button class="nav-link{active}" data-tab-target="{tab_id}">'
            f'{_esc(tab.get("label") or "")}</button></li>'
        )
        panels.append(
            f'<div class="tab-pane{active}" data-tab-id="{tab_id}">'
            f'{_child_placeholders(tab.get("panelModules"))}</div>'
        )
    return f'<ul class="nav nav-tabs">{"".join(nav)}</ul><div class="tab-content">{"".join(panels)}</div>'


def _render_container(settings: dict[str, Any], _language: str) -> str:
    width = settings.get("width")
    css_class = "container-fluid" if width == "full" else "container"
    return f'<div class="{css_class}">{_child_placeholders(settings.get("modules"))}</div>'


def _render_unknown(_settings: dict[str, Any], _language: str) -> str:
    return ""


def build_module_styles(module_id: Optional[int], settings: Any) -> str:
    """CSS rule for the module's ``style`` settings, scoped to its wrapper."""
    if module_id is None:
        return ""
    style = _as_settings(settings).get("style")
    if not isinstance(style, dict):
        return ""
    declarations = []
    for key, prop in _STYLE_PROPERTIES.items():
        value = style.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = f"{value}px" if key in ("padding", "margin", "fontSize") else str(value)
        if not isinstance(value, str) or not value.strip() or _UNSAFE_CSS_VALUE.search(value):
            continue
        declarations.append(f"{prop}: {value.strip()};")
    if not declarations:
        return ""
    return f'[data-module-id="{module_id}"] {{ {" ".join(declarations)} }}'


class ModuleRenderer:
    def __init__(self) -> None:
        self._renderers: dict[str, RenderFn] = {
            "text": _render_text,
            "link": _render_link,
            "icon": _render_icon,
            "row": _render_row,
            "tabs": _render_tabs,
            "container": _render_container,
        }

    def register(self, module_type: str, render_fn: RenderFn) -> None:
        self._renderers[module_type] = render_fn

    def render(
        self,
        module_type: str,
        settings: Any,
        language: str,
        module_id: Optional[int] = None,
    ) -> RenderedModule:
        render_fn = self._renderers.get(module_type)
        if render_fn is None:
            logger.debug("No renderer registered for module type", extra={"module_type": module_type})
            render_fn = _render_unknown
        parsed = _as_settings(settings)
        inner = render_fn(parsed, language)
        id_attr = f' data-module-id="{module_id}"' if module_id is not None else ""
        content = (
            f'<div class="cms-module cms-module-{_esc(module_type)}"{id_attr} lang="{_esc(language)}">'
            f"{inner}</div>"
        )
        return RenderedModule(content=content, styles=build_module_styles(module_id, parsed))


default_renderer = ModuleRenderer()
