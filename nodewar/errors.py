from __future__ import annotations


class GraphError(RuntimeError):
    """Base error for graph state transitions.

    retryable errors left nothing committed, so re-attempting the same request
    is safe. Terminal errors are surfaced to the caller as-is.
    """

    code = "graph_error"
    status_code = 500
    retryable = False


class NotFoundError(GraphError):
    code = "not_found"
    status_code = 404


class NodeNotFound(NotFoundError):
    code = "node_not_found"

    def __init__(self, node_id: str):
        super().__init__(f"Node {node_id} does not exist")
        self.node_id = node_id


class EdgeNotFound(NotFoundError):
    code = "edge_not_found"

    def __init__(self, src_id: str, dst_id: str):
        super().__init__(f"Edge {src_id}->{dst_id} does not exist")
        self.src_id = src_id
        self.dst_id = dst_id


class PlayerNotFound(NotFoundError):
    code = "player_not_found"

    def __init__(self, player_id: str):
        super().__init__(f"Player {player_id} does not exist")
        self.player_id = player_id


class InsufficientChargeError(GraphError):
    code = "insufficient_charge"
    status_code = 402

    def __init__(self, player_id: str, required: int, available: int | None = None):
        message = f"Player {player_id} needs {required} charge"
        if available is not None:
            message += f" but has {available}"
        super().__init__(message)
        self.player_id = player_id
        self.required = required
        self.available = available


class NotOwnerError(GraphError):
    code = "not_owner"
    status_code = 403


class NotRaidableError(GraphError):
    code = "not_raidable"
    status_code = 422


class ConflictError(GraphError):
    """Lost an optimistic race; the conditional write matched no row."""

    code = "conflict"
    status_code = 409
    retryable = True


class TransientStoreError(GraphError):
    """Underlying store I/O failed before anything committed."""

    code = "transient_store_failure"
    status_code = 503
    retryable = True


class ReconciliationInProgress(GraphError):
    code = "reconciliation_in_progress"
    status_code = 409
    retryable = True
