"""Board client: runs operations and keeps a ``BoardCache`` in step.

Every successful mutation does two separate things: it applies the returned
row to the cached lists right away, and it invalidates the affected keys so
``refresh`` later replaces them with what the store actually holds.
"""

from typing import Any, Callable, Mapping, Optional

from loguru import logger

import column_actions
import task_actions
from cache import BoardCache, QueryKeys, append_item, replace_item, without_item
from errors import ActionFailed, ActionResult


class BoardClient:
    def __init__(self, session_factory: Callable, cache: Optional[BoardCache] = None):
        self._session_factory = session_factory
        self.cache = cache or BoardCache()

    def _call(self, action: Callable[..., ActionResult], *args: Any) -> ActionResult:
        with self._session_factory() as db:
            return action(db, *args)

    # -------------------- queries --------------------
    def _fetcher(self, key):
        if key == QueryKeys.columns:
            return column_actions.list_columns, ()
        if key == QueryKeys.tasks:
            return task_actions.list_tasks, ()
        if key[:2] == QueryKeys.by_column_prefix and len(key) == 3:
            return task_actions.list_tasks_by_column, (key[2],)
        raise KeyError(key)

    def _query(self, key) -> list:
        if not self.cache.is_stale(key):
            return self.cache.get(key)
        action, args = self._fetcher(key)
        data = self._call(action, *args).unwrap()
        self.cache.set(key, data)
        return list(data)

    def columns(self) -> list:
        return self._query(QueryKeys.columns)

    def tasks(self) -> list:
        return self._query(QueryKeys.tasks)

    def tasks_by_column(self, column_id: str) -> list:
        return self._query(QueryKeys.tasks_by_column(column_id))

    def refresh(self) -> list:
        """Refetch every stale key and return the ones that were refreshed.

        A failed fetch is logged and leaves its key stale; the remaining keys
        are still refetched.
        """
        refreshed = []
        for key in self.cache.stale_keys():
            try:
                self._query(key)
            except ActionFailed as exc:
                logger.warning("Refresh of {} failed: {}", key, exc)
                continue
            refreshed.append(key)
        if refreshed:
            logger.debug("Refreshed {} cache key(s)", len(refreshed))
        return refreshed

    def _cached_task(self, task_id: str):
        for task in self.cache.get(QueryKeys.tasks) or []:
            if task.id == task_id:
                return task
        return None

    # -------------------- column mutations --------------------
    def create_column(self, data: Mapping[str, Any]) -> ActionResult:
        result = self._call(column_actions.create_column, data)
        if result.success:
            self.cache.update(QueryKeys.columns, lambda cols: append_item(cols, result.data))
            self.cache.invalidate(QueryKeys.columns)
        return result

    def update_column(self, column_id: str, data: Mapping[str, Any]) -> ActionResult:
        result = self._call(column_actions.update_column, column_id, data)
        if result.success:
            self.cache.update(QueryKeys.columns, lambda cols: replace_item(cols, result.data))
            self.cache.invalidate(QueryKeys.columns)
        return result

    def delete_column(self, column_id: str) -> ActionResult:
        result = self._call(column_actions.delete_column, column_id)
        if result.success:
            self.cache.update(QueryKeys.columns, lambda cols: without_item(cols, column_id))
            self.cache.update(QueryKeys.tasks, lambda ts: [t for t in ts if t.column_id != column_id])
            self.cache.update(QueryKeys.tasks_by_column(column_id), lambda ts: [])
            self.cache.invalidate(QueryKeys.tasks)
        return result

    # -------------------- task mutations --------------------
    def create_task(self, data: Mapping[str, Any]) -> ActionResult:
        result = self._call(task_actions.create_task, data)
        if result.success:
            task = result.data
            self.cache.update(QueryKeys.tasks, lambda ts: append_item(ts, task))
            self.cache.update(QueryKeys.tasks_by_column(task.column_id), lambda ts: append_item(ts, task))
            self.cache.invalidate(QueryKeys.tasks)
        return result

    def update_task(self, task_id: str, data: Mapping[str, Any]) -> ActionResult:
        before = self._cached_task(task_id)
        result = self._call(task_actions.update_task, task_id, data)
        if result.success:
            task = result.data
            self.cache.update(QueryKeys.tasks, lambda ts: replace_item(ts, task))
            if before is not None and before.column_id != task.column_id:
                self.cache.update(QueryKeys.tasks_by_column(before.column_id), lambda ts: without_item(ts, task.id))
                self.cache.update(QueryKeys.tasks_by_column(task.column_id), lambda ts: append_item(ts, task))
            else:
                self.cache.update(QueryKeys.tasks_by_column(task.column_id), lambda ts: replace_item(ts, task))
            self.cache.invalidate(QueryKeys.tasks)
        return result

    def delete_task(self, task_id: str) -> ActionResult:
        before = self._cached_task(task_id)
        result = self._call(task_actions.delete_task, task_id)
        if result.success:
            self.cache.update(QueryKeys.tasks, lambda ts: without_item(ts, task_id))
            if before is not None:
                self.cache.update(QueryKeys.tasks_by_column(before.column_id), lambda ts: without_item(ts, task_id))
            self.cache.invalidate(QueryKeys.by_column_prefix)
        return result

    def move_task(self, task_id: str, target_column_id: str) -> ActionResult:
        """Move speculatively, then confirm with the store or roll back."""
        before = self._cached_task(task_id)
        keys = [QueryKeys.tasks, QueryKeys.tasks_by_column(target_column_id)]
        if before is not None:
            keys.append(QueryKeys.tasks_by_column(before.column_id))
        snap = self.cache.snapshot(keys)

        if before is not None:
            guess = before.model_copy(update={"column_id": target_column_id})
            self.cache.update(QueryKeys.tasks, lambda ts: replace_item(ts, guess))
            self.cache.update(QueryKeys.tasks_by_column(before.column_id), lambda ts: without_item(ts, task_id))
            self.cache.update(QueryKeys.tasks_by_column(target_column_id), lambda ts: append_item(ts, guess))

        result = self._call(task_actions.move_task, task_id, target_column_id)
        if not result.success:
            self.cache.restore(snap)
            logger.warning("Rolled back move of task {}: {}", task_id, result.error)
            return result

        moved = result.data
        self.cache.update(QueryKeys.tasks, lambda ts: replace_item(ts, moved))
        self.cache.update(QueryKeys.tasks_by_column(moved.column_id), lambda ts: append_item(ts, moved))
        self.cache.invalidate(QueryKeys.tasks)
        return result
