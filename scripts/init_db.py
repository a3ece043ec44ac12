"""CLI script to create the database schema and seed initial data.
Usage: python scripts/init_db.py [--no-demo-data]
"""
import sys
import argparse
import logging
import pathlib
# Ensure the project root is on sys.path so `taskmanager` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from taskmanager.database import engine, create_db_and_tables
from taskmanager import repositories, seed
from taskmanager.config import settings


def main(demo_data: bool = True):
    """Create all tables, ensure roles and optionally seed demo accounts.

    From the command line demo data follows `SEED_DEMO_DATA`, so it is
    only created by default in the dev environment.

    Prints a short summary so the script doubles as a connectivity check
    for the configured `DATABASE_URL`.
    """
    print(f'Using database: {engine.url.render_as_string(hide_password=True)}')
    create_db_and_tables()
    with Session(engine) as session:
        seed.run(session, seed_demo_data=demo_data)
        users = repositories.UserRepository(session).count()
    print(f'Schema ready, {users} user(s) present.')


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser()
    parser.add_argument('--no-demo-data', action='store_true', help='Only create tables and roles')
    args = parser.parse_args()
    main(demo_data=settings.SEED_DEMO_DATA and not args.no_demo_data)
