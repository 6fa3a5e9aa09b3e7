"""Store-access objects over the SQLAlchemy session.

Routes receive a ``Store`` through ``Depends(get_store)`` instead of reaching
for module-level tables, so tests can hand in a session bound to a throwaway
database.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scholarstream.core.errors import ConflictError
from scholarstream.db.session import get_db
from scholarstream.models.application import Application
from scholarstream.models.scholarship import Scholarship
from scholarstream.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of a single-record update"""
    matched_count: int
    modified_count: int

    def to_dict(self) -> Dict[str, int]:
        return {"matched_count": self.matched_count, "modified_count": self.modified_count}


def _apply_fields(record, fields: Dict[str, Any]) -> bool:
    """Set attributes on a model instance; return True if anything changed"""
    changed = False
    for key, value in fields.items():
        if getattr(record, key) != value:
            setattr(record, key, value)
            changed = True
    return changed


class UserStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def add(self, user: User) -> User:
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("User already exists")
        self.db.refresh(user)
        return user

    def list(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at.desc()).all()

    def update_fields(self, user_id: int, **fields) -> UpdateResult:
        user = self.get(user_id)
        if not user:
            return UpdateResult(0, 0)
        modified = _apply_fields(user, fields)
        self.db.commit()
        return UpdateResult(1, int(modified))


class ScholarshipStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, scholarship_id: int) -> Optional[Scholarship]:
        return self.db.query(Scholarship).filter(Scholarship.id == scholarship_id).first()

    def list(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Scholarship]:
        query = self.db.query(Scholarship)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Scholarship.name.ilike(pattern),
                Scholarship.university_name.ilike(pattern),
                Scholarship.degree.ilike(pattern)
            ))
        if category:
            query = query.filter(Scholarship.category == category)
        return query.order_by(Scholarship.created_at.desc()).offset(skip).limit(limit).all()

    def add(self, scholarship: Scholarship) -> Scholarship:
        self.db.add(scholarship)
        self.db.commit()
        self.db.refresh(scholarship)
        return scholarship

    def update_fields(self, scholarship_id: int, **fields) -> UpdateResult:
        scholarship = self.get(scholarship_id)
        if not scholarship:
            return UpdateResult(0, 0)
        modified = _apply_fields(scholarship, fields)
        self.db.commit()
        return UpdateResult(1, int(modified))

    def delete(self, scholarship_id: int) -> int:
        scholarship = self.get(scholarship_id)
        if not scholarship:
            return 0
        self.db.delete(scholarship)
        self.db.commit()
        return 1


class ApplicationStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, application_id: int) -> Optional[Application]:
        return self.db.query(Application).filter(Application.id == application_id).first()

    def find_for_pair(self, user_id: int, scholarship_id: int) -> Optional[Application]:
        return self.db.query(Application).filter(
            Application.user_id == user_id,
            Application.scholarship_id == scholarship_id
        ).first()

    def insert(self, application: Application) -> Application:
        """Insert a new application.

        The (user_id, scholarship_id) unique constraint is the final arbiter
        for concurrent submissions: the losing insert surfaces as a conflict.
        """
        self.db.add(application)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Application already exists for this scholarship")
        self.db.refresh(application)
        return application

    def count_for_scholarship(self, scholarship_id: int) -> int:
        return self.db.query(Application).filter(Application.scholarship_id == scholarship_id).count()

    def list(
        self,
        user_id: Optional[int] = None,
        application_status: Optional[str] = None,
        payment_status: Optional[str] = None
    ) -> List[Application]:
        query = self.db.query(Application)
        if user_id is not None:
            query = query.filter(Application.user_id == user_id)
        if application_status:
            query = query.filter(Application.application_status == application_status)
        if payment_status:
            query = query.filter(Application.payment_status == payment_status)
        return query.order_by(Application.application_date.desc(), Application.id.desc()).all()

    def update_fields(self, application_id: int, **fields) -> UpdateResult:
        application = self.get(application_id)
        if not application:
            return UpdateResult(0, 0)
        modified = _apply_fields(application, fields)
        self.db.commit()
        return UpdateResult(1, int(modified))

    def mark_paid(self, application_id: int, paid_at: datetime, session_id: Optional[str] = None) -> UpdateResult:
        """Set payment_status to paid.

        Redelivered completion events rewrite the status but keep the first
        paid_at and session id, so the stored outcome is the same either way.
        """
        application = self.get(application_id)
        if not application:
            return UpdateResult(0, 0)

        modified = application.payment_status != "paid"
        application.payment_status = "paid"
        if application.paid_at is None:
            application.paid_at = paid_at
        if session_id and not application.stripe_session_id:
            application.stripe_session_id = session_id
        self.db.commit()
        return UpdateResult(1, int(modified))


class Store:
    """Bundle of store-access objects sharing one session"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserStore(db)
        self.scholarships = ScholarshipStore(db)
        self.applications = ApplicationStore(db)


def get_store(db: Session = Depends(get_db)) -> Store:
    """Dependency for FastAPI endpoints"""
    return Store(db)
