"""
Script to create an interview definition and print its candidate access code.
Run: python -m scripts.create_interview "Frontend Screening" "Full Stack Developer (React/Node.js)"
"""
import argparse
import logging
import secrets
import string
import sys

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from crisp.db.init_db import init_db
from crisp.db.session import SessionLocal
from crisp.db.models.interview import Interview

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def _code_block() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(4))


def generate_access_code() -> str:
    """Random CRISP-XXXX-XXXX code."""
    return f"CRISP-{_code_block()}-{_code_block()}"


def create_interview(title: str, roles: list, attempts: int = 5):
    """Create an active interview, retrying on the (unlikely) access code collision."""
    db = SessionLocal()
    try:
        for attempt in range(1, attempts + 1):
            interview = Interview(title=title, roles=roles, access_code=generate_access_code(), status="active")
            db.add(interview)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(f"Access code collision, retrying ({attempt}/{attempts})")
                continue
            db.refresh(interview)
            logger.info(f"Created interview {interview.id} with access code {interview.access_code}")
            return interview
        return None
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating interview: {e}", exc_info=True)
        return None
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create an interview and print its access code")
    parser.add_argument("title")
    parser.add_argument("roles", nargs="+", help="Role(s) the questions are generated for")
    args = parser.parse_args()

    init_db()
    interview = create_interview(args.title, args.roles)

    if interview:
        print(f"\n[SUCCESS] Interview '{interview.title}' created")
        print(f"   Access code: {interview.access_code}")
    else:
        print(f"\n[ERROR] Failed to create interview '{args.title}'")
        sys.exit(1)
