"""
opmap-client - Configuration-driven REST client

Operations are declared once in a JSON operation map (path template, HTTP
method, auth mode, query and body templates) and executed by key::

    from opmap_client import invoke, paginate

    change = invoke("Change.Get", {"sys_id": "abc123"})
    for record in paginate("Change.List", max_records=500):
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from opmap_client.core.version import __version__

__all__ = [
    "__version__",
    "CallOptions",
    "OperationDispatcher",
    "Paginator",
    "fetch_all",
    "invoke",
    "paginate",
]

if TYPE_CHECKING:
    from opmap_client.api.dispatcher import OperationDispatcher, invoke
    from opmap_client.api.pagination import Paginator, fetch_all, paginate
    from opmap_client.core.config import CallOptions


def __getattr__(name: str) -> Any:
    if name in __all__:
        from opmap_client import api, core

        return getattr(core if name == "CallOptions" else api, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
