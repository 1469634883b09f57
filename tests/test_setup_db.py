import pytest
from sqlalchemy import func, select

import column_actions
import task_actions
from models import Column, Task
from setup_db import SAMPLE_TASKS, build_parser, reset, seed


def test_seed_builds_dense_orders(db):
    columns, tasks = seed(db)
    assert [c.title for c in column_actions.list_columns(db).data] == ["Todo", "In Progress", "Done"]

    todo_tasks = task_actions.list_tasks_by_column(db, columns[0].id).data
    assert [t.order for t in todo_tasks] == [0, 1, 2]
    assert [t.title for t in todo_tasks] == ["Design landing page", "Set up authentication", "Review code quality"]
    assert len(task_actions.list_tasks(db).data) == len(SAMPLE_TASKS)


def test_new_task_after_seed_appends(db):
    columns, _ = seed(db)
    created = task_actions.create_task(db, {"title": "Another", "column_id": columns[0].id}).data
    assert created.order == 3


def test_reset_removes_rows(db):
    seed(db)
    reset(db)
    assert db.scalar(select(func.count()).select_from(Task)) == 0
    assert db.scalar(select(func.count()).select_from(Column)) == 0


def test_parser_requires_a_command():
    parser = build_parser()
    assert parser.parse_args(["seed"]).command == "seed"
    serve = parser.parse_args(["serve", "--port", "9000"])
    assert serve.port == 9000
    with pytest.raises(SystemExit):
        parser.parse_args([])
