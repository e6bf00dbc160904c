import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{ROOT_DIR / 'test_leadcms.db'}")
os.environ.setdefault("CLERK_JWT_ISSUER", "https://clerk.test")
os.environ.setdefault("CLERK_JWKS_URL", "https://clerk.test/.well-known/jwks.json")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from leadcms.auth.dependencies import AuthContext, get_current_user
from leadcms.db import models  # noqa: F401
from leadcms.db.base import Base, SessionLocal, engine
from leadcms.db.deps import get_session
from leadcms.db.enums import ModuleDraftStatusEnum
from leadcms.db.models import ModuleDraft, Org, Page, PageDraft, PageTranslation, User
from leadcms.main import app


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def seed_data(db_session):
    org = Org(name="Test Org", external_id="org_test")
    other_org = Org(name="Other Org", external_id="org_other")
    db_session.add_all([org, other_org])
    db_session.commit()

    user = User(org_id=org.id, clerk_user_id="user_test", email="test@example.com")
    other_user = User(org_id=org.id, clerk_user_id="user_other", email="other@example.com")
    stranger = User(org_id=other_org.id, clerk_user_id="user_stranger", email="stranger@example.com")
    db_session.add_all([user, other_user, stranger])
    db_session.commit()

    page = Page(org_id=org.id, name="Test Page")
    foreign_page = Page(org_id=other_org.id, name="Foreign Page")
    db_session.add_all([page, foreign_page])
    db_session.commit()

    translation = PageTranslation(page_id=page.id, language="cs", path="/test-module-clone", title="Test Page")
    foreign_translation = PageTranslation(
        page_id=foreign_page.id, language="cs", path="/foreign", title="Foreign Page"
    )
    db_session.add_all([translation, foreign_translation])
    db_session.commit()

    page_draft = PageDraft(org_id=org.id, user_id=user.id, page_translation_id=translation.id)
    other_user_draft = PageDraft(org_id=org.id, user_id=other_user.id, page_translation_id=translation.id)
    foreign_draft = PageDraft(
        org_id=other_org.id, user_id=stranger.id, page_translation_id=foreign_translation.id
    )
    db_session.add_all([page_draft, other_user_draft, foreign_draft])
    db_session.commit()

    return {
        "org": org,
        "user": user,
        "other_user": other_user,
        "translation": translation,
        "foreign_translation": foreign_translation,
        "page_draft": page_draft,
        "other_user_draft": other_user_draft,
        "foreign_draft": foreign_draft,
    }


@pytest.fixture()
def auth_context(seed_data) -> AuthContext:
    return AuthContext(
        user_id=seed_data["user"].id,
        org_id=seed_data["org"].id,
        clerk_user_id="user_test",
    )


@pytest.fixture()
def make_module(db_session, seed_data):
    """Persist a saved module draft (sort 0) in the test user's page draft."""

    def _make(module_type, settings=None, parent=None, page_draft=None):
        module = ModuleDraft(
            page_draft_id=(page_draft or seed_data["page_draft"]).id,
            type=module_type,
            settings=settings if settings is not None else {},
            parent_id=parent.id if parent is not None else None,
            sort=0,
            status=ModuleDraftStatusEnum.created,
        )
        db_session.add(module)
        db_session.commit()
        db_session.refresh(module)
        return module

    return _make


@pytest.fixture()
def set_settings(db_session):
    def _set(module, settings):
        module.settings = settings
        db_session.commit()
        db_session.refresh(module)
        return module

    return _set


@pytest.fixture()
def override_dependencies(db_session, auth_context):
    def get_session_override():
        try:
            yield db_session
        finally:
            pass

    def get_user_override():
        return auth_context

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_current_user] = get_user_override
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def api_client(override_dependencies):
    with TestClient(app) as client:
        yield client
