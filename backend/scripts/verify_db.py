"""
Check that DATABASE_URL is reachable and the portal tables exist.

Usage:
    python -m scripts.verify_db      (from backend/)
"""
import logging
import sys

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from portal.core.db import SessionLocal
from portal.core.logging import configure_logging
from portal.models.company import Company
from portal.models.user import User

logger = logging.getLogger("verify_db")


def verify() -> int:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        logger.info("Database connection successful", extra={"step": "connect"})

        user_count = db.query(User).count()
        logger.info("users table exists (%d records)", user_count, extra={"step": "users"})

        company_count = db.query(Company).count()
        logger.info(
            "companies table exists (%d records)", company_count, extra={"step": "companies"}
        )
        return 0
    except SQLAlchemyError:
        logger.exception("Database verification failed", extra={"step": "verify"})
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    sys.exit(verify())
