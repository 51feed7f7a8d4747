from sqlalchemy import Column, String, Integer, Text, DateTime, Index, Uuid, func
from datetime import datetime
import uuid
from ..core.db import Base

class Company(Base):
    __tablename__ = "companies"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    domain = Column(String, index=True, nullable=True)
    industry = Column(String, nullable=True)
    size = Column(String, nullable=True)          # display band, e.g. "51-200"
    logo_url = Column(String, nullable=True)

    # Apollo.io enrichment
    apollo_id = Column(String, unique=True, index=True, nullable=True)
    enriched_at = Column(DateTime, nullable=True)
    website = Column(String, nullable=True)
    linkedin_url = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    sub_industry = Column(String, nullable=True)
    company_type = Column(String, nullable=True)
    employee_count = Column(Integer, nullable=True)
    employee_range = Column(String, nullable=True)
    founded_year = Column(Integer, nullable=True)
    revenue = Column(String, nullable=True)
    hq_city = Column(String, nullable=True)
    hq_state = Column(String, nullable=True)
    hq_country = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    twitter_url = Column(String, nullable=True)
    facebook_url = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# Names are unique regardless of case ("Acme" == "ACME")
Index("uq_companies_name_lower", func.lower(Company.name), unique=True)
