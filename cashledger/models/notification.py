# cashledger/models/notification.py
import uuid
from datetime import datetime
from sqlalchemy import Column, Text, DateTime, Boolean, JSON, Uuid
from cashledger.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    type = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    reference_id = Column(Uuid)
    reference_table = Column(Text)
    is_viewed = Column(Boolean, default=False, nullable=False)
    viewed_at = Column(DateTime(timezone=True))
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
