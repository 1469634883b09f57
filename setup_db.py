#!/usr/bin/env python3
"""Database helper commands.

Usage:
    python setup_db.py seed     Create tables, then insert sample columns and tasks
    python setup_db.py reset    Delete every row (development only)
    python setup_db.py serve    Run the API with uvicorn
"""

import argparse
import sys

from loguru import logger
from sqlalchemy import delete
from sqlalchemy.orm import Session

from database import SessionLocal, engine
from main import LOG_LEVEL, configure_logging
from models import Base, Column, Task

SAMPLE_TASKS = [
    # (column index, title, description, priority, status, assignee)
    (0, "Design landing page", "Create wireframes and mockups for the new landing page", "high", "todo", "1"),
    (0, "Set up authentication", "Implement user login and registration", "medium", "todo", "2"),
    (1, "Database migration", "Update user table schema", "low", "in_progress", "3"),
    (2, "Deploy to production", "Set up CI/CD pipeline", "high", "done", "4"),
    (0, "Review code quality", "Audit codebase for performance improvements", "medium", "todo", None),
]


def seed(db: Session) -> tuple[list[Column], list[Task]]:
    columns = [Column(title=t, order=i) for i, t in enumerate(("Todo", "In Progress", "Done"))]
    db.add_all(columns)
    db.flush()

    tasks = []
    per_column: dict[str, int] = {}
    for idx, title, description, priority, status, assignee in SAMPLE_TASKS:
        column_id = columns[idx].id
        order = per_column.get(column_id, 0)
        per_column[column_id] = order + 1
        tasks.append(Task(
            title=title, description=description, column_id=column_id, order=order,
            priority=priority, status=status, assignee_id=assignee,
        ))
    db.add_all(tasks)
    db.commit()
    logger.info("Seeded {} columns and {} tasks", len(columns), len(tasks))
    return columns, tasks


def reset(db: Session) -> None:
    # Hard delete is only ever done here, never by the board operations
    db.execute(delete(Task))
    db.execute(delete(Column))
    db.commit()
    logger.info("Database reset")


def _seed(args: argparse.Namespace) -> int:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        seed(db)
    return 0


def _reset(args: argparse.Namespace) -> int:
    with SessionLocal() as db:
        reset(db)
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Kanban board database helper")
    parser.add_argument("--log-level", default=LOG_LEVEL)
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("seed", help="Seed the database with initial data").set_defaults(func=_seed)
    subparsers.add_parser("reset", help="Reset the database (delete all data)").set_defaults(func=_reset)

    serve = subparsers.add_parser("serve", help="Start the API server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", default=8000, type=int)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(func=_serve)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        return args.func(args)
    except Exception:
        logger.exception("{} failed", args.command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
