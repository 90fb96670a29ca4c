"""
Typed failures raised by the task store.

The HTTP layer in main.py is the only place these are turned into status
codes; messages are safe to show to API clients.
"""

NOT_FOUND_MESSAGE = "Tarea no encontrada"
SERVER_ERROR_MESSAGE = "Error del servidor"


class TaskStoreError(Exception):
    """Base class for task store failures"""

    def __init__(self, message: str = SERVER_ERROR_MESSAGE):
        super().__init__(message)
        self.message = message


class ValidationError(TaskStoreError, ValueError):
    """Bad or missing input (HTTP 400)"""


class NotFoundError(TaskStoreError):
    """No row exists for the requested id (HTTP 404)"""

    def __init__(self, task_id: int):
        super().__init__(NOT_FOUND_MESSAGE)
        self.task_id = task_id


class StoreConnectionError(TaskStoreError):
    """The database could not be reached"""

    def __init__(self, message: str = "Base de datos no disponible"):
        super().__init__(message)


class UnclassifiedStoreError(TaskStoreError):
    """Any other database failure"""
