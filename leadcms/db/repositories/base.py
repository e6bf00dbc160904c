from contextlib import contextmanager

from sqlalchemy.orm import Session


class Repository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def save(self, obj):
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    @contextmanager
    def transaction(self):
        """Commit everything done inside the block, or roll all of it back."""
        try:
            yield self.session
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
