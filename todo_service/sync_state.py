"""
Client-side mirror of the server's task list.

TaskBoard keeps an ordered local collection (newest first) and only ever
fills it from server responses, so ids and timestamps stay server-assigned.
The completed toggle is the one optimistic action: it is applied as a
tentative change and then confirmed with the server row or rolled back.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from todo_service.client import (
    ApiResponseError,
    ApiUnreachableError,
    TaskApiClient,
    TaskApiError,
)
from todo_service.schemas import Task

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    CHECKING = "checking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ViewState(str, Enum):
    LOADING = "loading"
    UNREACHABLE = "unreachable"
    ERROR = "error"
    EMPTY = "empty"
    READY = "ready"


class TaskActionError(Exception):
    """A user action failed; ``message`` is meant to be shown as-is"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class PendingChange:
    """A local change waiting for the server to confirm it"""
    task_id: int
    previous: Task
    tentative: Task


@dataclass
class BoardStats:
    total: int
    pending: int
    completed: int
    progress: int  # percent done, rounded


def _action_message(exc: TaskApiError, default: str) -> str:
    if isinstance(exc, ApiResponseError) and exc.server_message:
        return exc.server_message
    return default


class TaskBoard:
    def __init__(self, api: TaskApiClient):
        self.api = api
        self.tasks: List[Task] = []
        self.loading = True
        self.error = ""
        self.failure: Optional[TaskApiError] = None
        self.backend_status = ConnectionStatus.CHECKING
        self.db_status = ConnectionStatus.CHECKING
        self.pending: Dict[int, PendingChange] = {}

    async def aclose(self):
        await self.api.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    @property
    def view_state(self) -> ViewState:
        if self.loading:
            return ViewState.LOADING
        if isinstance(self.failure, ApiUnreachableError):
            return ViewState.UNREACHABLE
        if self.error:
            return ViewState.ERROR
        if not self.tasks:
            return ViewState.EMPTY
        return ViewState.READY

    @property
    def pending_tasks(self) -> List[Task]:
        return [task for task in self.tasks if not task.completed]

    @property
    def completed_tasks(self) -> List[Task]:
        return [task for task in self.tasks if task.completed]

    def stats(self) -> BoardStats:
        total = len(self.tasks)
        completed = len(self.completed_tasks)
        progress = int(completed * 100 / total + 0.5) if total else 0
        return BoardStats(total=total, pending=total - completed, completed=completed, progress=progress)

    def _fail(self, exc: TaskApiError):
        self.failure = exc
        self.error = exc.message

    async def check_status(self) -> bool:
        """
        Ask /health whether the backend and its database are up.

        The backend only counts as connected after a successful answer.
        """
        self.backend_status = ConnectionStatus.CHECKING
        try:
            health = await self.api.health()
        except TaskApiError as e:
            logger.warning(f"Backend status check failed: {e.message}")
            self.backend_status = ConnectionStatus.DISCONNECTED
            self.db_status = ConnectionStatus.DISCONNECTED
            self._fail(e)
            return False

        self.backend_status = ConnectionStatus.CONNECTED
        if health.database == ConnectionStatus.CONNECTED.value:
            self.db_status = ConnectionStatus.CONNECTED
            self.error = ""
        else:
            self.db_status = ConnectionStatus.DISCONNECTED
            self.error = "Base de datos desconectada"
        return True

    async def load(self) -> bool:
        """
        Check status, then replace the collection with the server's list.

        Skips the list request entirely when the status check fails.
        """
        self.loading = True
        self.error = ""
        self.failure = None
        try:
            if not await self.check_status():
                logger.warning("Backend not healthy, skipping task fetch")
                return False
            try:
                tasks = await self.api.list_tasks()
            except TaskApiError as e:
                logger.error(f"Error fetching tasks: {e.message}")
                self._fail(e)
                return False
            self.tasks = tasks
            self.pending.clear()
            logger.info(f"Loaded {len(tasks)} tasks")
            return True
        finally:
            self.loading = False

    async def refresh(self) -> bool:
        """Full re-synchronization with the server"""
        return await self.load()

    async def change_backend_url(self, url: str) -> bool:
        if url and url != self.api.base_url:
            logger.info(f"Backend URL changed to {url}")
            self.api.base_url = url
        return await self.refresh()

    def _index_of(self, task_id: int) -> int:
        for index, task in enumerate(self.tasks):
            if task.id == task_id:
                return index
        return -1

    def _replace(self, task: Task):
        index = self._index_of(task.id)
        if index >= 0:
            self.tasks[index] = task

    def get(self, task_id: int) -> Optional[Task]:
        index = self._index_of(task_id)
        return self.tasks[index] if index >= 0 else None

    async def add_task(self, title: str) -> Task:
        if not title or not title.strip():
            raise TaskActionError("Por favor, escribe una tarea")
        try:
            task = await self.api.create_task(title)
        except TaskApiError as e:
            logger.error(f"Error adding task: {e.message}")
            raise TaskActionError(
                _action_message(e, "No se pudo agregar la tarea. Verifica la conexión.")
            ) from e
        self.tasks.insert(0, task)
        return task

    async def update_task(
        self,
        task_id: int,
        title: Optional[str] = None,
        completed: Optional[bool] = None
    ) -> Task:
        try:
            task = await self.api.update_task(task_id, title=title, completed=completed)
        except TaskApiError as e:
            logger.error(f"Error updating task {task_id}: {e.message}")
            raise TaskActionError(_action_message(e, "No se pudo actualizar la tarea.")) from e
        self._replace(task)
        return task

    def _begin(self, current: Task, **changes) -> PendingChange:
        change = PendingChange(
            task_id=current.id,
            previous=current,
            tentative=current.model_copy(update=changes),
        )
        self.pending[current.id] = change
        self._replace(change.tentative)
        return change

    def _confirm(self, change: PendingChange, confirmed: Task):
        if self.pending.get(change.task_id) is change:
            del self.pending[change.task_id]
        self._replace(confirmed)

    def _rollback(self, change: PendingChange):
        if self.pending.get(change.task_id) is change:
            del self.pending[change.task_id]
        # A later change may already have replaced our tentative row
        if self.get(change.task_id) == change.tentative:
            self._replace(change.previous)

    async def toggle_completed(self, task_id: int) -> Task:
        current = self.get(task_id)
        if current is None:
            raise TaskActionError("Tarea no encontrada")

        change = self._begin(current, completed=not current.completed)
        try:
            confirmed = await self.api.update_task(task_id, completed=change.tentative.completed)
        except TaskApiError as e:
            logger.error(f"Error toggling task {task_id}, reverting: {e.message}")
            self._rollback(change)
            raise TaskActionError(_action_message(e, "No se pudo actualizar la tarea.")) from e
        self._confirm(change, confirmed)
        return confirmed

    async def delete_task(self, task_id: int):
        try:
            await self.api.delete_task(task_id)
        except TaskApiError as e:
            logger.error(f"Error deleting task {task_id}: {e.message}")
            raise TaskActionError(_action_message(e, "No se pudo eliminar la tarea.")) from e
        self.tasks = [task for task in self.tasks if task.id != task_id]
        self.pending.pop(task_id, None)
