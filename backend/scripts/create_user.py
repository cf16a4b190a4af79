"""CLI script to create a user account directly in the backend DB.

Registration over HTTP only offers the student and instructor roles;
use this script to bootstrap administrators.
Usage: python scripts/create_user.py USERNAME PASSWORD [--role admin]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `quizhub` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from quizhub.database import engine, create_db_and_tables
from quizhub import repositories, services
from quizhub.models import ROLES


def main(username: str, password: str, role: str = 'admin'):
    """Create `username` with `role` unless the name is already taken."""
    create_db_and_tables()
    with Session(engine) as session:
        if repositories.UserRepository(session).get_by_username(username):
            print(f'User already exists: {username}')
            return 1
        user = services.AuthService(session).register(username, password, role)
        print(f'Created {user.role} {user.username} (id={user.id})')
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('username')
    parser.add_argument('password')
    parser.add_argument('--role', choices=ROLES, default='admin')
    args = parser.parse_args()
    sys.exit(main(args.username, args.password, args.role))
