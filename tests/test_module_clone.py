import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from leadcms.auth.dependencies import AuthContext
from leadcms.db.models import ModuleDraft
from leadcms.db.repositories.module_drafts import ModuleDraftsRepository
from leadcms.services import module_clone
from leadcms.services.module_clone import (
    ModuleAccessDeniedError,
    ModuleCloneStorageError,
    ModuleDraftNotFoundError,
    ParentModuleNotFoundError,
    clone_module_draft,
    collect_module_tree,
)


def _clone(db_session, auth_context, module, **kwargs):
    return clone_module_draft(
        session=db_session,
        auth=auth_context,
        module_draft_id=module.id,
        language="cs",
        **kwargs,
    )


def _module_count(db_session) -> int:
    return db_session.scalar(select(func.count()).select_from(ModuleDraft))


def _by_type(result, module_type):
    return [module for module in result["modules"] if module["type"] == module_type]


def test_leaf_clone(db_session, auth_context, make_module):
    original = make_module("text", {"content": "<p>Hello</p>"})

    result = _clone(db_session, auth_context, original)

    assert len(result["modules"]) == 1
    assert list(result["idMapping"]) == [str(original.id)]
    clone = result["modules"][0]
    assert clone["id"] != original.id
    assert clone["id"] == result["idMapping"][str(original.id)]
    assert clone["sort"] == -1
    assert clone["status"] == "created"
    assert clone["settings"] == {"content": "<p>Hello</p>"}
    assert result["rootModule"] == {"id": clone["id"], "type": "text", "settings": clone["settings"]}


def test_row_clone_remaps_children_and_parents(db_session, auth_context, make_module, set_settings):
    row = make_module("row")
    child1 = make_module("text", {"content": "<p>1</p>"}, parent=row)
    child2 = make_module("text", {"content": "<p>2</p>"}, parent=row)
    set_settings(row, {"columns": [{"modules": [child1.id, child2.id]}]})

    result = _clone(db_session, auth_context, row)

    assert len(result["modules"]) == 3
    assert set(result["idMapping"]) == {str(row.id), str(child1.id), str(child2.id)}
    new_row_id = result["idMapping"][str(row.id)]
    new_child_ids = [result["idMapping"][str(child1.id)], result["idMapping"][str(child2.id)]]

    cloned_row = result["modules"][0]
    assert cloned_row["id"] == new_row_id
    assert cloned_row["settings"]["columns"][0]["modules"] == new_child_ids
    assert child1.id not in cloned_row["settings"]["columns"][0]["modules"]
    for cloned_child in _by_type(result, "text"):
        assert cloned_child["parentId"] == new_row_id
        assert cloned_child["parentId"] != row.id


def test_nested_containers_are_cloned_breadth_first(db_session, auth_context, make_module, set_settings):
    outer = make_module("row")
    inner = make_module("row", parent=outer)
    text = make_module("text", {"content": "<p>Deep</p>"}, parent=inner)
    set_settings(inner, {"columns": [{"modules": [text.id]}]})
    set_settings(outer, {"columns": [{"modules": [inner.id]}]})

    result = _clone(db_session, auth_context, outer)

    assert len(result["modules"]) == 3
    ids = result["idMapping"]
    assert set(ids) == {str(outer.id), str(inner.id), str(text.id)}
    assert [module["id"] for module in result["modules"]] == [ids[str(outer.id)], ids[str(inner.id)], ids[str(text.id)]]
    assert result["modules"][1]["parentId"] == ids[str(outer.id)]
    assert result["modules"][2]["parentId"] == ids[str(inner.id)]


def test_tabs_rewrite_each_panel_independently(db_session, auth_context, make_module, set_settings):
    tabs = make_module("tabs")
    first = make_module("text", parent=tabs)
    second = make_module("text", parent=tabs)
    third = make_module("link", parent=tabs)
    set_settings(
        tabs,
        {
            "tabs": [
                {"id": "tab1", "label": "Tab 1", "panelModules": [first.id, second.id]},
                {"id": "tab2", "label": "Tab 2", "panelModules": [third.id]},
            ]
        },
    )

    result = _clone(db_session, auth_context, tabs)

    ids = result["idMapping"]
    panels = result["rootModule"]["settings"]["tabs"]
    assert panels[0]["panelModules"] == [ids[str(first.id)], ids[str(second.id)]]
    assert panels[1]["panelModules"] == [ids[str(third.id)]]
    assert panels[0]["label"] == "Tab 1"


def test_no_original_ids_survive_in_cloned_references(db_session, auth_context, make_module, set_settings):
    container = make_module("container")
    row = make_module("row", parent=container)
    text = make_module("text", parent=row)
    tabs = make_module("tabs", parent=container)
    link = make_module("link", parent=tabs)
    set_settings(row, {"columns": [{"modules": [text.id]}]})
    set_settings(tabs, {"tabs": [{"id": "a", "panelModules": [link.id]}]})
    set_settings(container, {"width": "full", "modules": [row.id, tabs.id]})

    result = _clone(db_session, auth_context, container)

    old_ids = {container.id, row.id, text.id, tabs.id, link.id}
    assert {int(key) for key in result["idMapping"]} == old_ids
    assert not old_ids & set(result["idMapping"].values())
    for module in result["modules"]:
        assert module["id"] not in old_ids
        assert module["parentId"] not in old_ids
    by_type = {module["type"]: module for module in result["modules"]}
    assert set(by_type["container"]["settings"]["modules"]) == {
        result["idMapping"][str(row.id)],
        result["idMapping"][str(tabs.id)],
    }
    assert by_type["container"]["settings"]["width"] == "full"


def test_root_settings_override_applies_only_to_root(db_session, auth_context, make_module, set_settings):
    row = make_module("row", {"columns": []})
    inner = make_module("row", parent=row)
    grandchild = make_module("text", parent=inner)
    set_settings(inner, {"columns": [{"modules": [grandchild.id]}]})

    result = _clone(
        db_session,
        auth_context,
        row,
        settings_override={"columns": [{"modules": [inner.id]}]},
    )

    assert set(result["idMapping"]) == {str(row.id), str(inner.id), str(grandchild.id)}
    assert result["rootModule"]["settings"] == {"columns": [{"modules": [result["idMapping"][str(inner.id)]]}]}
    db_session.refresh(row)
    assert row.settings == {"columns": []}


def test_dangling_reference_is_skipped(db_session, auth_context, make_module, set_settings):
    row = make_module("row")
    child = make_module("text", parent=row)
    set_settings(row, {"columns": [{"modules": [child.id, 999999]}]})

    result = _clone(db_session, auth_context, row)

    assert len(result["modules"]) == 2
    assert "999999" not in result["idMapping"]
    assert result["rootModule"]["settings"]["columns"][0]["modules"] == [result["idMapping"][str(child.id)], 999999]


def test_out_of_range_reference_is_skipped(db_session, auth_context, make_module, set_settings):
    container = make_module("container")
    child = make_module("text", parent=container)
    set_settings(container, {"modules": [2**70, child.id]})

    result = _clone(db_session, auth_context, container)

    assert len(result["modules"]) == 2
    assert result["rootModule"]["settings"]["modules"] == [2**70, result["idMapping"][str(child.id)]]


def test_non_id_strings_in_override_are_skipped(db_session, auth_context, make_module):
    container = make_module("container")
    child = make_module("text", parent=container)

    result = _clone(
        db_session,
        auth_context,
        container,
        settings_override={"modules": ["\u00b2", str(child.id)]},
    )

    assert set(result["idMapping"]) == {str(container.id), str(child.id)}
    assert result["rootModule"]["settings"]["modules"] == ["\u00b2", result["idMapping"][str(child.id)]]


def test_reference_into_another_draft_is_treated_as_dangling(
    db_session, auth_context, seed_data, make_module, set_settings
):
    foreign = make_module("text", page_draft=seed_data["other_user_draft"])
    row = make_module("row")
    set_settings(row, {"columns": [{"modules": [foreign.id]}]})

    result = _clone(db_session, auth_context, row)

    assert list(result["idMapping"]) == [str(row.id)]


def test_cyclic_references_terminate(db_session, auth_context, make_module, set_settings):
    outer = make_module("container")
    inner = make_module("container", parent=outer)
    set_settings(outer, {"modules": [inner.id]})
    set_settings(inner, {"modules": [outer.id, inner.id]})

    result = _clone(db_session, auth_context, outer)

    ids = result["idMapping"]
    assert len(result["modules"]) == 2
    assert result["modules"][1]["settings"]["modules"] == [ids[str(outer.id)], ids[str(inner.id)]]


def test_duplicate_reference_is_cloned_once(db_session, auth_context, make_module, set_settings):
    row = make_module("row")
    child = make_module("text", parent=row)
    set_settings(row, {"columns": [{"modules": [child.id]}, {"modules": [child.id]}]})

    result = _clone(db_session, auth_context, row)

    new_child_id = result["idMapping"][str(child.id)]
    assert len(result["modules"]) == 2
    assert [column["modules"] for column in result["rootModule"]["settings"]["columns"]] == [[new_child_id], [new_child_id]]


def test_collect_returns_root_first_with_effective_settings(db_session, make_module, set_settings):
    row = make_module("row")
    child = make_module("text", {"content": "x"}, parent=row)
    set_settings(row, {"columns": [{"modules": [child.id]}]})

    collected = collect_module_tree(ModuleDraftsRepository(db_session), row, {"columns": [{"modules": [child.id]}], "gap": 1})

    assert [entry.module.id for entry in collected] == [row.id, child.id]
    assert collected[0].settings["gap"] == 1
    assert collected[0].discovered_from is None
    assert collected[1].settings == {"content": "x"}
    assert collected[1].discovered_from == row.id


def test_clones_are_persisted(db_session, auth_context, make_module, set_settings):
    row = make_module("row")
    child = make_module("text", parent=row)
    set_settings(row, {"columns": [{"modules": [child.id]}]})
    page_draft_id = row.page_draft_id

    result = _clone(db_session, auth_context, row)
    db_session.expunge_all()

    new_row = db_session.get(ModuleDraft, result["idMapping"][str(row.id)])
    new_child = db_session.get(ModuleDraft, result["idMapping"][str(child.id)])
    assert new_row is not None and new_child is not None
    assert new_child.parent_id == new_row.id
    assert new_row.settings["columns"][0]["modules"] == [new_child.id]
    assert new_row.page_draft_id == page_draft_id
    assert new_row.is_unsaved


def test_target_parent_is_applied_to_root_only(db_session, auth_context, make_module, set_settings):
    host = make_module("container")
    row = make_module("row")
    child = make_module("text", parent=row)
    set_settings(row, {"columns": [{"modules": [child.id]}]})

    result = _clone(db_session, auth_context, row, target_parent_id=host.id)

    assert result["modules"][0]["parentId"] == host.id
    assert result["modules"][1]["parentId"] == result["idMapping"][str(row.id)]


def test_clone_root_is_detached_without_target_parent(db_session, auth_context, make_module):
    host = make_module("container")
    text = make_module("text", parent=host)

    result = _clone(db_session, auth_context, text)

    assert result["modules"][0]["parentId"] is None


def test_unknown_target_parent(db_session, auth_context, make_module):
    text = make_module("text")
    with pytest.raises(ParentModuleNotFoundError):
        _clone(db_session, auth_context, text, target_parent_id=123456)


def test_two_clones_have_disjoint_ids(db_session, auth_context, make_module, set_settings):
    row = make_module("row")
    child = make_module("text", parent=row)
    set_settings(row, {"columns": [{"modules": [child.id]}]})

    first = _clone(db_session, auth_context, row)
    second = _clone(db_session, auth_context, row)

    assert set(first["idMapping"]) == set(second["idMapping"])
    assert not set(first["idMapping"].values()) & set(second["idMapping"].values())


def test_storage_failure_rolls_back_everything(db_session, auth_context, make_module, set_settings, monkeypatch):
    row = make_module("row")
    child = make_module("text", parent=row)
    set_settings(row, {"columns": [{"modules": [child.id]}]})
    before = _module_count(db_session)

    def failing_write(self, rewritten, remapper, *, target_parent_id=None):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(module_clone.CloneWriter, "write", failing_write)

    with pytest.raises(ModuleCloneStorageError):
        _clone(db_session, auth_context, row)

    assert _module_count(db_session) == before


def test_missing_root_is_not_found(db_session, auth_context):
    with pytest.raises(ModuleDraftNotFoundError):
        clone_module_draft(session=db_session, auth=auth_context, module_draft_id=999999, language="cs")


def test_other_users_module_is_access_denied(db_session, auth_context, seed_data, make_module):
    module = make_module("text", page_draft=seed_data["other_user_draft"])
    with pytest.raises(ModuleAccessDeniedError):
        _clone(db_session, auth_context, module)


def test_other_orgs_module_is_not_found(db_session, auth_context, seed_data, make_module):
    module = make_module("text", page_draft=seed_data["foreign_draft"])
    with pytest.raises(ModuleDraftNotFoundError):
        _clone(db_session, auth_context, module)


def test_denied_clone_writes_nothing(db_session, seed_data, make_module):
    module = make_module("text", page_draft=seed_data["page_draft"])
    before = _module_count(db_session)
    intruder = AuthContext(user_id=seed_data["other_user"].id, org_id=seed_data["org"].id)

    with pytest.raises(ModuleAccessDeniedError):
        _clone(db_session, intruder, module)

    assert _module_count(db_session) == before


def test_root_module_matches_first_module_for_container_clone(db_session, auth_context, make_module, set_settings):
    row = make_module("row")
    left = make_module("text", {"content": "<p>Left</p>"}, parent=row)
    right = make_module("text", {"content": "<p>Right</p>"}, parent=row)
    set_settings(row, {"columns": [{"modules": [left.id], "xs": "6"}, {"modules": [right.id], "xs": "6"}]})

    result = _clone(db_session, auth_context, row)

    first = result["modules"][0]
    assert result["rootModule"] == {"id": first["id"], "type": first["type"], "settings": first["settings"]}
    assert result["rootModule"]["type"] == "row"
    assert result["rootModule"]["settings"]["columns"][1]["modules"] == [result["idMapping"][str(right.id)]]
