# cashledger/models/directory.py
import uuid
from datetime import datetime
from sqlalchemy import Column, Text, DateTime, Boolean, Uuid
from cashledger.db.base import Base


class Staff(Base):
    __tablename__ = "staff"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id = Column(Text)
    name = Column(Text, nullable=False)
    email = Column(Text)
    role = Column(Text)
    branch = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
