"""Command line entry points.

Usage examples:
  tasknestle-create-admin
  tasknestle-create-admin --email admin@example.com --password 'S3cretPass' --create-tables
  tasknestle-api --host 0.0.0.0 --port 5000 --reload
"""
import argparse
import logging
import sys
from typing import Optional

import uvicorn
from sqlalchemy.orm import sessionmaker

from . import crud
from .config import get_settings
from .database import create_db_engine
from .errors import TaskNestleError
from .models import Base

logger = logging.getLogger("tasknestle.cli")


def parse_create_admin_args(argv: list[str]) -> argparse.Namespace:
    settings = get_settings()
    p = argparse.ArgumentParser(
        prog="tasknestle-create-admin",
        description="Create the first TaskNestle admin account if none exists",
    )
    p.add_argument("--name", default=settings.admin_name, help="Admin display name")
    p.add_argument("--email", default=settings.admin_email, help=f"Admin email (default: {settings.admin_email})")
    p.add_argument("--password", default=settings.admin_password, help="Admin password (default: ADMIN_PASSWORD)")
    p.add_argument("--database-url", default=settings.database_url, help="Override DATABASE_URL")
    p.add_argument("--create-tables", action="store_true",
                   help="Create missing tables first (development databases without alembic)")
    return p.parse_args(argv)


def create_admin(argv: Optional[list[str]] = None) -> int:
    ns = parse_create_admin_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    engine = create_db_engine(ns.database_url)
    if ns.create_tables:
        Base.metadata.create_all(bind=engine)

    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        admin, created = crud.ensure_admin(db, ns.name, ns.email, ns.password)
    except TaskNestleError as e:
        print(f"Error creating admin user: {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()

    if not created:
        print(f"Admin user already exists: {admin.email}")
        return 0

    print("Admin user created successfully!")
    print(f"Email: {admin.email}")
    print(f"Password: {ns.password}")
    print("Please change the password after first login.")
    return 0


def parse_run_api_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="tasknestle-api", description="Run the TaskNestle API server")
    p.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    p.add_argument("--port", type=int, default=5000, help="Port (default: 5000)")
    p.add_argument("--reload", action="store_true", help="Reload on code changes")
    return p.parse_args(argv)


def run_api(argv: Optional[list[str]] = None) -> int:
    ns = parse_run_api_args(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger.info(f"Starting {settings.app_name} on {ns.host}:{ns.port}")
    uvicorn.run(
        "tasknestle.api.main:create_app",
        factory=True,
        host=ns.host,
        port=ns.port,
        reload=ns.reload,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(create_admin())
