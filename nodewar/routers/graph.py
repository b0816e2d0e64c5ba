import logging
from typing import AsyncGenerator, List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from nodewar.converter import DataConverter
from nodewar.dependencies import get_graph_db, get_notifier
from nodewar.models.schema_models import (
    EdgeSchema,
    FactionScoreSchema,
    NodeSchema,
    PlayerSchema,
)
from nodewar.models.schemas import utcnow
from nodewar.notifier import ChangeNotifier
from nodewar.services.graph_db import GraphDB

graph_router = APIRouter()
data_converter = DataConverter()


async def event_generator(notifier: ChangeNotifier) -> AsyncGenerator[str, None]:
    """Relay committed node/edge changes as Server-Sent Events.

    Args:
        notifier (ChangeNotifier): Source of change events
    """
    async for event in notifier.subscribe():
        sse_message = data_converter.convert_event_to_sse(event)
        logging.debug(f"SSE: {sse_message}")
        yield sse_message


class GraphAPI:
    @staticmethod
    @graph_router.get("/graph/nodes", response_model=List[NodeSchema])
    async def get_nodes(graph_db: GraphDB = Depends(get_graph_db)):
        return await graph_db.read_nodes()

    @staticmethod
    @graph_router.get("/graph/edges", response_model=List[EdgeSchema])
    async def get_edges(graph_db: GraphDB = Depends(get_graph_db)):
        return await graph_db.read_edges()

    @staticmethod
    @graph_router.get("/graph/stream")
    async def stream_changes(notifier: ChangeNotifier = Depends(get_notifier)):
        return StreamingResponse(
            event_generator(notifier),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )


class PlayerAPI:
    @staticmethod
    @graph_router.get("/players/{player_id}", response_model=PlayerSchema)
    async def get_player(player_id: str, graph_db: GraphDB = Depends(get_graph_db)):
        player = await graph_db.read_player(player_id)
        if player is None:
            raise HTTPException(
                status_code=404,
                detail={"error": "player_not_found", "message": f"Player {player_id} does not exist"},
            )
        return player


class FactionScoreAPI:
    @staticmethod
    @graph_router.get("/faction_scores/current", response_model=FactionScoreSchema)
    async def get_current_faction_score(graph_db: GraphDB = Depends(get_graph_db)):
        return await graph_db.read_week_score(utcnow())
