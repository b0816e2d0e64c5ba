import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from nodewar.dependencies import get_action_processor, get_income_reconciler
from nodewar.errors import GraphError, TransientStoreError
from nodewar.models.dc_models import (
    CaptureRequestModel,
    FortifyRequestModel,
    RaidRequestModel,
    RaidResultModel,
    ReconcileResultModel,
)
from nodewar.models.schema_models import NodeSchema
from nodewar.retry import with_retry
from nodewar.services.actions import ActionProcessor
from nodewar.services.reconciler import IncomeReconciler

action_router = APIRouter()


def to_http_exception(error: GraphError) -> HTTPException:
    return HTTPException(
        status_code=error.status_code,
        detail={"error": error.code, "message": str(error)},
    )


class ActionServer:
    @staticmethod
    @action_router.post("/actions/capture", response_model=NodeSchema)
    async def capture_node(
        request: CaptureRequestModel,
        processor: ActionProcessor = Depends(get_action_processor),
    ) -> NodeSchema:
        try:
            return await with_retry(
                lambda: processor.capture(request.node_id, request.player_id),
                label=f"capture {request.node_id}",
            )
        except GraphError as e:
            raise to_http_exception(e)

    @staticmethod
    @action_router.post("/actions/fortify", response_model=NodeSchema)
    async def fortify_node(
        request: FortifyRequestModel,
        processor: ActionProcessor = Depends(get_action_processor),
    ) -> NodeSchema:
        try:
            return await with_retry(
                lambda: processor.fortify(request.node_id, request.player_id),
                label=f"fortify {request.node_id}",
            )
        except GraphError as e:
            raise to_http_exception(e)

    @staticmethod
    @action_router.post("/actions/raid", response_model=RaidResultModel)
    async def raid_edge(
        request: RaidRequestModel,
        processor: ActionProcessor = Depends(get_action_processor),
    ) -> RaidResultModel:
        # Not retried: a second attempt would roll the outcome again.
        try:
            return await processor.raid(request.src_id, request.dst_id, request.player_id)
        except GraphError as e:
            raise to_http_exception(e)


class ReconcileServer:
    @staticmethod
    @action_router.post("/reconcile", response_model=ReconcileResultModel)
    async def reconcile(reconciler: IncomeReconciler = Depends(get_income_reconciler)):
        """Trigger one income settlement pass. Safe to call repeatedly."""
        try:
            result = await reconciler.reconcile()
        except GraphError as e:
            logging.error(f"Reconciliation failed: {e}")
            status_code = 503 if isinstance(e, TransientStoreError) else e.status_code
            return JSONResponse(
                status_code=status_code,
                content={"success": False, "error": str(e)},
            )
        if not result.success:
            content = result.model_dump(mode="json")
            content["error"] = "Faction score update failed; retried on the next run"
            return JSONResponse(status_code=500, content=content)
        return result
