from typing import Optional
from sqlalchemy import select
from sqlalchemy.orm import Session

from leadcms.db.models import Org, User


class OrgsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_external_id(self, external_id: str) -> Optional[Org]:
        stmt = select(Org).where(Org.external_id == external_id)
        return self.session.scalars(stmt).first()

    def create(self, name: str, external_id: str) -> Org:
        org = Org(name=name, external_id=external_id)
        self.session.add(org)
        self.session.commit()
        self.session.refresh(org)
        return org


class UsersRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_clerk_id(self, *, org_id: int, clerk_user_id: str) -> Optional[User]:
        stmt = select(User).where(User.org_id == org_id, User.clerk_user_id == clerk_user_id)
        return self.session.scalars(stmt).first()

    def create(self, *, org_id: int, clerk_user_id: str, email: Optional[str] = None) -> User:
        user = User(org_id=org_id, clerk_user_id=clerk_user_id, email=email)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user
