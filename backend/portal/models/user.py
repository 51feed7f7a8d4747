from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from ..core.db import Base
from .company import Company

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    firebase_id = Column(String, unique=True, index=True, nullable=False)  # immutable
    email = Column(String, nullable=False)
    name = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    title = Column(String, nullable=True)
    company_id = Column(Uuid(as_uuid=True), ForeignKey("companies.id"), nullable=True)
    division = Column(String, nullable=True)
    unit = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    company = relationship(Company, lazy="joined")
