"""
Async HTTP client for the to-do API.

Failures are split three ways so callers can tell them apart:
no response at all (ApiUnreachableError), an error status from the server
(ApiResponseError) and a success status with a body we cannot read
(MalformedResponseError).
"""

import logging

import httpx
from pydantic import TypeAdapter, ValidationError as SchemaValidationError
from typing import Any, List, Optional

from todo_service.config import get_settings
from todo_service.schemas import HealthStatus, Task, TaskDeleted

logger = logging.getLogger(__name__)

_task_list = TypeAdapter(List[Task])


class TaskApiError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ApiUnreachableError(TaskApiError):
    """No response was received (connection refused, DNS, timeout)"""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class ApiResponseError(TaskApiError):
    """The server answered with a 4xx/5xx status"""

    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(f"Error {status_code}: {message or 'Error del servidor'}")
        self.status_code = status_code
        self.server_message = message


class MalformedResponseError(TaskApiError):
    """The server answered successfully with an unreadable body"""


async def _log_request(request: httpx.Request):
    logger.debug(f"-> {request.method} {request.url}")


async def _log_response(response: httpx.Response):
    logger.debug(f"<- {response.status_code} {response.request.url}")


class TaskApiClient:
    """Thin wrapper over httpx.AsyncClient returning schema objects"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
            transport=transport,
            event_hooks={"request": [_log_request], "response": [_log_response]},
        )

    @property
    def base_url(self) -> str:
        return str(self._client.base_url).rstrip("/")

    @base_url.setter
    def base_url(self, url: str):
        self._client.base_url = url

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Timeout calling {method} {self.base_url}{path}")
            raise ApiUnreachableError(
                f"Timeout: El backend no responde en {self.base_url}", timed_out=True
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Connection error calling {method} {self.base_url}{path}: {str(e)}")
            raise ApiUnreachableError(
                f"No se pudo conectar con el backend en {self.base_url}. Verifica que esté desplegado."
            ) from e

        if response.is_error:
            raise ApiResponseError(response.status_code, self._server_message(response))

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError("Respuesta inválida del servidor") from e

    @staticmethod
    def _server_message(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"]
        return None

    @staticmethod
    def _parse(adapter_or_model, data: Any):
        try:
            if isinstance(adapter_or_model, TypeAdapter):
                return adapter_or_model.validate_python(data)
            return adapter_or_model.model_validate(data)
        except SchemaValidationError as e:
            raise MalformedResponseError("Respuesta inválida del servidor") from e

    async def health(self) -> HealthStatus:
        return self._parse(HealthStatus, await self._request("GET", "/health"))

    async def list_tasks(self) -> List[Task]:
        return self._parse(_task_list, await self._request("GET", "/tasks"))

    async def get_task(self, task_id: int) -> Task:
        return self._parse(Task, await self._request("GET", f"/tasks/{task_id}"))

    async def create_task(self, title: str) -> Task:
        return self._parse(Task, await self._request("POST", "/tasks", json={"title": title}))

    async def update_task(
        self,
        task_id: int,
        title: Optional[str] = None,
        completed: Optional[bool] = None
    ) -> Task:
        """Send only the fields that were given"""
        payload = {}
        if title is not None:
            payload["title"] = title
        if completed is not None:
            payload["completed"] = completed
        return self._parse(Task, await self._request("PUT", f"/tasks/{task_id}", json=payload))

    async def delete_task(self, task_id: int) -> TaskDeleted:
        return self._parse(TaskDeleted, await self._request("DELETE", f"/tasks/{task_id}"))
