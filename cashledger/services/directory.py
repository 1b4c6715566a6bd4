# cashledger/services/directory.py
from sqlalchemy import func
from sqlalchemy.orm import Session

from cashledger.models.directory import Admin, Staff

ACCOUNTANT_ROLE = "accountant"


def resolve_submitter(db: Session, staff_id):
    """The staff member (or admin) a transaction belongs to, if known."""
    if staff_id is None:
        return None
    return db.get(Staff, staff_id) or db.get(Admin, staff_id)


def is_admin(db: Session, user_id) -> bool:
    return user_id is not None and db.get(Admin, user_id) is not None


def all_admins(db: Session) -> list:
    return db.query(Admin).order_by(Admin.created_at, Admin.id).all()


def active_accountants(db: Session) -> list:
    return db.query(Staff).filter(
        func.lower(Staff.role) == ACCOUNTANT_ROLE,
        Staff.is_active.is_(True),
    ).order_by(Staff.created_at, Staff.id).all()
