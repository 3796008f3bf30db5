# src/focus_planner/records/tasks.py

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from ..auth.session import Session
from ..core.ports import RecordBackend
from .columns import TASKS, utc_now
from .models import Priority, Task, TaskType
from .query import Filter, eq, is_null
from .service import RecordService

logger = logging.getLogger(__name__)


class TaskRepository:
    """Tasks, projects and lists, including subtask and completion operations."""

    def __init__(self, backend: RecordBackend, session: Session) -> None:
        self.records: RecordService[Task] = RecordService(backend, session, TASKS)

    # ---- queries ----

    async def fetch_task(self, task_id: str) -> Task:
        return await self.records.get(task_id)

    async def fetch_tasks(self, *, type: TaskType | None = None) -> list[Task]:
        filters = [eq("type", type.value)] if type is not None else []
        return await self.records.list_by_owner(filters)

    async def fetch_tasks_by_ids(self, ids: Iterable[str]) -> list[Task]:
        return await self.records.get_many(ids)

    async def fetch_library_tasks(
            self, *, in_library: bool = True, type: TaskType = TaskType.TASK
    ) -> list[Task]:
        """Top-level rows of `type` in the library (True) or the log (False)."""
        return await self.records.list_by_owner(
            [
                eq("type", type.value),
                eq("is_in_library", in_library),
                is_null("parent_task_id"),
            ]
        )

    async def fetch_subtasks(self, parent_id: str) -> list[Task]:
        """Direct subtasks, in display order."""
        return await self.records.list_by_owner([eq("parent_task_id", parent_id)])

    async def fetch_projects(self) -> list[Task]:
        return await self.fetch_tasks(type=TaskType.PROJECT)

    async def fetch_project_tasks(self, project_id: str) -> list[Task]:
        return await self.records.list_by_owner([eq("project_id", project_id)])

    # ---- creation ----

    async def create(self, task: Task) -> Task:
        """Insert a fully specified task as-is (sort order included)."""
        if task.is_completed and task.completed_date is None:
            task.completed_date = utc_now()
        return await self.records.create(task)

    async def create_task(
            self,
            title: str,
            *,
            type: TaskType = TaskType.TASK,
            description: str | None = None,
            priority: Priority = Priority.MEDIUM,
            category_id: str | None = None,
            project_id: str | None = None,
            parent_task_id: str | None = None,
            is_in_library: bool = True,
            sort_order: int | None = None,
    ) -> Task:
        """Create a task appended after its siblings unless `sort_order` is given."""
        title = (title or "").strip()
        if not title:
            raise ValueError("title is required")

        if sort_order is None:
            sort_order = await self.records.next_sort_order(
                self._sibling_filters(type, project_id, parent_task_id)
            )

        task = Task(
            title=title,
            description=description,
            type=type,
            priority=priority,
            sort_order=sort_order,
            is_in_library=is_in_library,
            category_id=category_id,
            project_id=project_id,
            parent_task_id=parent_task_id,
        )
        return await self.records.create(task)

    async def create_subtask(
            self, title: str, parent_task_id: str, *, project_id: str | None = None
    ) -> Task:
        return await self.create_task(title, parent_task_id=parent_task_id, project_id=project_id)

    async def create_project(self, title: str, *, category_id: str | None = None) -> Task:
        return await self.create_task(title, type=TaskType.PROJECT, category_id=category_id)

    async def create_list(self, title: str, *, category_id: str | None = None) -> Task:
        return await self.create_task(title, type=TaskType.LIST, category_id=category_id)

    async def create_project_task(
            self, title: str, project_id: str, *, sort_order: int | None = None
    ) -> Task:
        return await self.create_task(title, project_id=project_id, sort_order=sort_order)

    @staticmethod
    def _sibling_filters(
            type: TaskType, project_id: str | None, parent_task_id: str | None
    ) -> list[Filter]:
        if parent_task_id is not None:
            return [eq("parent_task_id", parent_task_id)]
        if project_id is not None:
            return [eq("project_id", project_id)]
        return [eq("type", type.value), is_null("parent_task_id"), is_null("project_id")]

    # ---- mutation ----

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        """Partial update. Keeps completed_date in step with is_completed."""
        if "is_completed" in fields and "completed_date" not in fields:
            fields["completed_date"] = utc_now() if fields["is_completed"] else None
        return await self.records.update(task_id, **fields)

    async def delete_task(self, task_id: str) -> None:
        """Delete a task; its subtasks, project members and commitments go with it."""
        await self.records.delete(task_id)

    async def update_sort_orders(self, updates: Sequence[tuple[str, int]]) -> None:
        """
        One write per row, in order. Not atomic: a failure leaves earlier rows
        updated and is raised as-is.
        """
        for task_id, sort_order in updates:
            await self.records.update(task_id, sort_order=sort_order)
        logger.debug("Updated sort orders for %d tasks", len(updates))

    # ---- completion ----

    async def set_completion(self, task_id: str, completed: bool, *, cascade: bool = True) -> Task:
        """
        Set the completion flag/timestamp on a task and, when `cascade`, on its
        direct subtasks. Subtasks of subtasks are never touched.
        """
        completed_date = utc_now() if completed else None
        task = await self.records.update(
            task_id, is_completed=completed, completed_date=completed_date
        )
        if cascade:
            children = await self.records.update_where(
                [eq("parent_task_id", task_id)],
                is_completed=completed,
                completed_date=completed_date,
            )
            if children:
                logger.info(
                    "Cascaded completed=%s from task_id=%s to %d subtasks",
                    completed,
                    task_id,
                    len(children),
                )
        return task

    async def complete_task(self, task_id: str) -> Task:
        return await self.set_completion(task_id, True)

    async def uncomplete_task(self, task_id: str) -> Task:
        return await self.set_completion(task_id, False)

    async def restore_subtask_states(self, parent_id: str, states: Sequence[bool]) -> int:
        """
        Re-apply captured completion states to subtasks by position.

        Only subtasks whose state differs are written; positions past the end
        of `states` are left alone. Returns the number of writes.
        """
        subtasks = await self.fetch_subtasks(parent_id)
        writes = 0
        for index, subtask in enumerate(subtasks):
            if index >= len(states):
                break
            target = bool(states[index])
            if subtask.is_completed != target:
                await self.set_completion(subtask.id, target, cascade=False)
                writes += 1
        logger.debug("Restored %d subtask states under task_id=%s", writes, parent_id)
        return writes

    async def toggle_completion(self, task_id: str) -> Task:
        """
        Toggle a task the way the list views do.

        Completing remembers the direct subtasks' states on the task, then
        cascades. Un-completing a task that remembers states restores them;
        without a snapshot it cascades.
        """
        task = await self.records.get(task_id)
        if not task.is_completed:
            subtasks = await self.fetch_subtasks(task_id)
            if subtasks:
                await self.records.update(
                    task_id, previous_completion_state=[s.is_completed for s in subtasks]
                )
            return await self.set_completion(task_id, True)

        if task.previous_completion_state is None:
            return await self.set_completion(task_id, False)

        updated = await self.set_completion(task_id, False, cascade=False)
        await self.restore_subtask_states(task_id, task.previous_completion_state)
        return updated

    async def toggle_subtask_completion(self, subtask_id: str) -> Task:
        """
        Toggle one subtask. The parent follows: it is auto-completed when every
        sibling is done (remembering the pre-toggle states) and un-completed,
        alone, when they are not.
        """
        subtask = await self.records.get(subtask_id)
        parent_id = subtask.parent_task_id
        before: list[bool] = []
        if parent_id is not None:
            before = [s.is_completed for s in await self.fetch_subtasks(parent_id)]

        updated = await self.set_completion(subtask_id, not subtask.is_completed, cascade=False)
        if parent_id is None:
            return updated

        siblings = await self.fetch_subtasks(parent_id)
        all_done = bool(siblings) and all(s.is_completed for s in siblings)
        parent = await self.records.get(parent_id)
        if all_done and not parent.is_completed:
            await self.records.update(parent_id, previous_completion_state=before)
            await self.set_completion(parent_id, True, cascade=False)
            logger.info("Auto-completed task_id=%s (all subtasks done)", parent_id)
        elif not all_done and parent.is_completed:
            await self.set_completion(parent_id, False, cascade=False)
            logger.info("Reopened task_id=%s (subtask reopened)", parent_id)
        return updated
