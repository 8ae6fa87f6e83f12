"""Change-request wrappers over the bundled ``Change.*`` operations.

Each function is a thin call into the dispatcher or paginator; the
operation map holds the endpoint details.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from opmap_client.api.dispatcher import OperationDispatcher, OptionsLike, coerce_options, get_default_dispatcher
from opmap_client.api.pagination import Paginator
from opmap_client.core.constants import DEFAULT_BATCH_SIZE

CHANGE_GET = "Change.Get"
CHANGE_LIST = "Change.List"
CHANGE_CREATE = "Change.Create"
CHANGE_UPDATE = "Change.Update"
CHANGE_DELETE = "Change.Delete"
CHANGE_TASKS = "Change.Tasks"


def unwrap_result(response: Any) -> Any:
    """Return ``response["result"]`` when present, else the response itself."""
    if isinstance(response, dict) and "result" in response:
        return response["result"]
    return response


class ChangeRequests:
    """Change-request operations bound to one dispatcher."""

    def __init__(self, dispatcher: OperationDispatcher | None = None):
        self.dispatcher = dispatcher or get_default_dispatcher()
        self.paginator = Paginator(self.dispatcher)

    def get(self, sys_id: str, options: OptionsLike = None) -> dict[str, Any]:
        return unwrap_result(self.dispatcher.invoke(CHANGE_GET, {"sys_id": sys_id}, options))

    def list(
        self,
        query: str | None = None,
        options: OptionsLike = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_records: int | None = 0,
    ) -> Iterator[dict[str, Any]]:
        """Lazily list change requests, optionally filtered by an encoded query."""
        call_options = coerce_options(options)
        if query:
            call_options = call_options.with_query(sysparm_query=query)
        return self.paginator.paginate(
            CHANGE_LIST, None, call_options, batch_size=batch_size, max_records=max_records
        )

    def create(
        self, short_description: str, description: str = "", type: str = "normal", options: OptionsLike = None
    ) -> dict[str, Any]:
        params = {"short_description": short_description, "description": description, "type": type}
        return unwrap_result(self.dispatcher.invoke(CHANGE_CREATE, params, options))

    def update(self, sys_id: str, options: OptionsLike = None, **fields: Any) -> dict[str, Any]:
        """Patch a change request.

        Body fields without a value are sent as their literal ``{name}``
        placeholder, matching the operation map.
        """
        return unwrap_result(self.dispatcher.invoke(CHANGE_UPDATE, {"sys_id": sys_id, **fields}, options))

    def delete(self, sys_id: str, options: OptionsLike = None) -> None:
        self.dispatcher.invoke(CHANGE_DELETE, {"sys_id": sys_id}, options)

    def tasks(
        self, sys_id: str, options: OptionsLike = None, batch_size: int = DEFAULT_BATCH_SIZE, max_records: int | None = 0
    ) -> Iterator[dict[str, Any]]:
        return self.paginator.paginate(
            CHANGE_TASKS, {"sys_id": sys_id}, options, batch_size=batch_size, max_records=max_records
        )
