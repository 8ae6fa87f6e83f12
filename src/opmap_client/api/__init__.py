"""API module - operation dispatch over HTTP.

This module provides:
- Template substitution and the operation registry
- Request building and the httpx transport
- Retry logic with exponential backoff and error message helpers
- The operation dispatcher and the offset paginator

The dispatcher, transport and paginator are resolved lazily so importing
the registry does not pull in httpx, pandas or tqdm.
"""

from opmap_client.api.registry import (
    HttpMethod,
    OperationDefinition,
    OperationRegistry,
    OperationsMap,
    get_default_registry,
)
from opmap_client.api.resilience import (
    ErrorMessageHelper,
    resolve_retry_config,
    retry_on_status_codes,
    retry_with_backoff,
    run_with_retry,
)
from opmap_client.api.templates import find_placeholders, substitute

__all__ = [
    # Templates + registry
    "HttpMethod",
    "OperationDefinition",
    "OperationRegistry",
    "OperationsMap",
    "find_placeholders",
    "get_default_registry",
    "substitute",
    # Resilience
    "ErrorMessageHelper",
    "resolve_retry_config",
    "retry_on_status_codes",
    "retry_with_backoff",
    "run_with_retry",
    # Lazy: request, transport, dispatch, pagination
    "HttpxTransport",
    "OperationDispatcher",
    "Paginator",
    "RequestBuilder",
    "fetch_all",
    "get_default_dispatcher",
    "invoke",
    "paginate",
    "records_to_dataframe",
]


from opmap_client.core.lazy import make_getattr

__getattr__ = make_getattr(
    __name__,
    mapping={
        "RequestBuilder": "opmap_client.api.request",
        "HttpxTransport": "opmap_client.api.transport",
        "OperationDispatcher": "opmap_client.api.dispatcher",
        "get_default_dispatcher": "opmap_client.api.dispatcher",
        "invoke": "opmap_client.api.dispatcher",
        "Paginator": "opmap_client.api.pagination",
        "paginate": "opmap_client.api.pagination",
        "fetch_all": "opmap_client.api.pagination",
        "records_to_dataframe": "opmap_client.api.pagination",
    },
)
