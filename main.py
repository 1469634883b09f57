import os, sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.responses import RedirectResponse, JSONResponse
from loguru import logger
from sqlalchemy.orm import Session

import column_actions
import task_actions
from database import engine, get_db
from errors import ActionResult
from models import Base
from schemas import ColumnInput, MoveInput, TaskInput, TaskUpdate

BOARD_TITLE = os.getenv("BOARD_TITLE", "Kanban")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

STATUS_BY_KIND = {"validation": 400, "not_found": 404, "store": 500}


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan> "
            "{message}"
        ),
    )


configure_logging(LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tables are created on startup, never migrated
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title=BOARD_TITLE, lifespan=lifespan)


def respond(result: ActionResult) -> JSONResponse:
    status = 200 if result.success else STATUS_BY_KIND.get(result.kind, 500)
    return JSONResponse(status_code=status, content=result.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_failed(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Validation failed"
    logger.warning("Rejected {} {}: {}", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.get("/")
def root(db: Session = Depends(get_db)):
    # First visit on an empty board gets the default columns
    result = column_actions.ensure_default_columns(db)
    if not result.success:
        return respond(result)
    return RedirectResponse(url="/api/board", status_code=302)


@app.get("/api/board")
def board_view(db: Session = Depends(get_db)):
    result = task_actions.load_board(db)
    if result.success:
        result.data = {"title": BOARD_TITLE, "columns": result.data}
    return respond(result)

# ===== Columns =====

@app.get("/api/columns")
def list_columns(db: Session = Depends(get_db)):
    return respond(column_actions.list_columns(db))

@app.post("/api/columns")
def create_column(payload: ColumnInput, db: Session = Depends(get_db)):
    return respond(column_actions.create_column(db, payload))

@app.get("/api/columns/{column_id}")
def get_column(column_id: str, db: Session = Depends(get_db)):
    return respond(column_actions.get_column(db, column_id))

@app.put("/api/columns/{column_id}")
def update_column(column_id: str, payload: ColumnInput, db: Session = Depends(get_db)):
    return respond(column_actions.update_column(db, column_id, payload))

@app.delete("/api/columns/{column_id}")
def delete_column(column_id: str, db: Session = Depends(get_db)):
    return respond(column_actions.delete_column(db, column_id))

@app.get("/api/columns/{column_id}/tasks")
def list_column_tasks(column_id: str, db: Session = Depends(get_db)):
    return respond(task_actions.list_tasks_by_column(db, column_id))

# ===== Tasks =====

@app.get("/api/tasks")
def list_tasks(db: Session = Depends(get_db)):
    return respond(task_actions.list_tasks(db))

@app.post("/api/tasks")
def create_task(payload: TaskInput, db: Session = Depends(get_db)):
    return respond(task_actions.create_task(db, payload))

@app.get("/api/tasks/{task_id}")
def get_task(task_id: str, db: Session = Depends(get_db)):
    return respond(task_actions.get_task(db, task_id))

@app.patch("/api/tasks/{task_id}")
def update_task(task_id: str, payload: TaskUpdate, db: Session = Depends(get_db)):
    return respond(task_actions.update_task(db, task_id, payload))

@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, db: Session = Depends(get_db)):
    return respond(task_actions.delete_task(db, task_id))

@app.post("/api/tasks/{task_id}/move")
def move_task(task_id: str, payload: MoveInput, db: Session = Depends(get_db)):
    return respond(task_actions.move_task(db, task_id, payload.target_column_id))
