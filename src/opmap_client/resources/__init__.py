"""Resource wrappers built on the operation map."""

from opmap_client.resources.changes import ChangeRequests, unwrap_result

__all__ = ["ChangeRequests", "unwrap_result"]
