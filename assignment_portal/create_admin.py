"""Create or promote an approved admin account.

Usage:
    python -m assignment_portal.create_admin --email admin@example.com --name "Site Admin"

The password is read from ADMIN_PASSWORD or prompted for.
"""
import argparse
import getpass
import logging
import os
import sys

from sqlalchemy.orm import Session

from assignment_portal.auth.passwords import hash_password
from assignment_portal.database import SessionLocal, init_db
from assignment_portal.models.user import Role, User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def ensure_admin(db: Session, email: str, name: str, password: str) -> User:
    """Make sure an approved admin with ``email`` exists.

    An existing account is promoted and approved; its password is left alone.
    """
    normalized = email.strip().lower()
    user = db.query(User).filter(User.email == normalized).first()
    if user is None:
        user = User(
            name=name,
            email=normalized,
            hashed_password=hash_password(password),
            role=Role.ADMIN.value,
            approved=True,
        )
        db.add(user)
        logger.info('Created admin account %s', normalized)
    elif user.role != Role.ADMIN.value or not user.approved:
        user.role = Role.ADMIN.value
        user.approved = True
        logger.info('Promoted %s to approved admin', normalized)

    db.commit()
    db.refresh(user)
    return user


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--email', required=True)
    parser.add_argument('--name', default='Administrator')
    args = parser.parse_args(argv)

    password = os.getenv('ADMIN_PASSWORD') or getpass.getpass('Admin password: ')
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.', file=sys.stderr)
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        user = ensure_admin(db, args.email, args.name, password)
    finally:
        db.close()
    print(f'Admin ready: {user.email} (id {user.id})')


if __name__ == '__main__':
    main()
