"""DB service layer for graph reads and world seeding.

- Routers should not touch DB sessions directly; they call this module.
- This layer owns session/transaction boundaries.
- Use CRUD helpers that do NOT commit inside session.begin().
"""

from datetime import datetime
from typing import Iterable, List

from sqlalchemy.ext.asyncio import async_sessionmaker

from nodewar.crud import CreateData, ReadData
from nodewar.domain.graph_rules import week_start
from nodewar.models.schema_models import (
    EdgeSchema,
    FactionScoreSchema,
    NodeSchema,
    PlayerSchema,
)


class GraphDB:
    def __init__(self, Session: async_sessionmaker):
        self.Session: async_sessionmaker = Session

    async def read_player(self, player_id: str) -> PlayerSchema | None:
        async with self.Session() as session:
            return await ReadData.read_player(player_id, session)

    async def read_nodes(self) -> List[NodeSchema]:
        async with self.Session() as session:
            return await ReadData.read_nodes(session)

    async def read_edges(self) -> List[EdgeSchema]:
        async with self.Session() as session:
            return await ReadData.read_edges(session)

    async def read_week_score(self, now: datetime) -> FactionScoreSchema:
        """Leaderboard row for the week containing now; zeros before the first pass of the week."""
        week = week_start(now)
        async with self.Session() as session:
            score = await ReadData.read_faction_score(week, session)
        if score is None:
            return FactionScoreSchema(week_start=week, red_score=0, blue_score=0)
        return score

    async def create_players(self, players: Iterable[PlayerSchema]) -> None:
        async with self.Session() as session:
            async with session.begin():
                for player in players:
                    await CreateData.create_player(player, session)

    async def create_world(self, nodes: Iterable[NodeSchema], edges: Iterable[EdgeSchema] = ()) -> None:
        """Insert generated nodes and edges in one transaction (nodes first)."""
        async with self.Session() as session:
            async with session.begin():
                for node in nodes:
                    await CreateData.create_node(node, session)
                for edge in edges:
                    await CreateData.create_edge(edge, session)
