"""Graph State: reads and conditional single-statement writes.

None of these helpers commit. The service layer opens the transaction
(``async with session.begin()``) and decides whether it commits or rolls back.
Every write is a compare-and-set: an UPDATE/DELETE whose WHERE clause carries
the state the caller observed, so a lost race shows up as zero matched rows.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import List

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from nodewar.errors import TransientStoreError
from nodewar.models.schema_models import (
    ChargeAdjustment,
    EdgeSchema,
    FactionScoreSchema,
    NodeSchema,
    PlayerSchema,
)
from nodewar.models.schemas import Edge, FactionScore, Node, Player

NO_SYNC = {"synchronize_session": False}


@contextmanager
def store_errors(label: str):
    """Translate store I/O failures into TransientStoreError."""
    try:
        yield
    except IntegrityError:
        raise
    except (OperationalError, DBAPIError) as e:
        logging.error(f"Failed to {label}: {e}")
        raise TransientStoreError(f"Failed to {label}") from e


class ReadData:
    @staticmethod
    async def read_player(player_id: str, session: AsyncSession) -> PlayerSchema | None:
        with store_errors("read player"):
            result = await session.execute(select(Player).where(Player.id == player_id))
            row = result.scalars().first()
        return PlayerSchema.model_validate(row) if row is not None else None

    @staticmethod
    async def read_players(session: AsyncSession) -> List[PlayerSchema]:
        with store_errors("read players"):
            result = await session.execute(select(Player).order_by(Player.id))
            rows = result.scalars().all()
        return [PlayerSchema.model_validate(row) for row in rows]

    @staticmethod
    async def read_node(node_id: str, session: AsyncSession) -> NodeSchema | None:
        with store_errors("read node"):
            result = await session.execute(select(Node).where(Node.id == node_id))
            row = result.scalars().first()
        return NodeSchema.model_validate(row) if row is not None else None

    @staticmethod
    async def read_nodes(session: AsyncSession) -> List[NodeSchema]:
        with store_errors("read nodes"):
            result = await session.execute(select(Node).order_by(Node.created_at, Node.id))
            rows = result.scalars().all()
        return [NodeSchema.model_validate(row) for row in rows]

    @staticmethod
    async def read_edge(src_id: str, dst_id: str, session: AsyncSession) -> EdgeSchema | None:
        with store_errors("read edge"):
            result = await session.execute(
                select(Edge).where(Edge.src_id == src_id, Edge.dst_id == dst_id)
            )
            row = result.scalars().first()
        return EdgeSchema.model_validate(row) if row is not None else None

    @staticmethod
    async def read_edges(session: AsyncSession) -> List[EdgeSchema]:
        with store_errors("read edges"):
            result = await session.execute(
                select(Edge).order_by(Edge.created_at, Edge.src_id, Edge.dst_id)
            )
            rows = result.scalars().all()
        return [EdgeSchema.model_validate(row) for row in rows]

    @staticmethod
    async def count_owned_nodes(player_id: str, session: AsyncSession) -> int:
        with store_errors("count owned nodes"):
            result = await session.execute(
                select(func.count()).select_from(Node).where(Node.owner_id == player_id)
            )
            return int(result.scalar_one())

    @staticmethod
    async def read_faction_score(week_start: date, session: AsyncSession) -> FactionScoreSchema | None:
        with store_errors("read faction score"):
            result = await session.execute(
                select(FactionScore).where(FactionScore.week_start == week_start)
            )
            row = result.scalars().first()
        return FactionScoreSchema.model_validate(row) if row is not None else None


class UpdateData:
    @staticmethod
    async def compare_and_set_node_owner(
        node_id: str, expected_owner: str | None, new_owner: str | None, session: AsyncSession
    ) -> bool:
        """Set node owner only if it still holds expected_owner.

        Returns:
            bool: False when another writer changed the owner first
        """
        if expected_owner is None:
            condition = Node.owner_id.is_(None)
        else:
            condition = Node.owner_id == expected_owner
        stmt = (
            update(Node)
            .where(Node.id == node_id, condition)
            .values(owner_id=new_owner)
            .execution_options(**NO_SYNC)
        )
        with store_errors("set node owner"):
            result = await session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def compare_and_set_fortify_level(
        node_id: str, owner_id: str, expected_lvl: int, session: AsyncSession
    ) -> bool:
        """Raise fortify_lvl by one if the node is still owned by owner_id at expected_lvl."""
        stmt = (
            update(Node)
            .where(
                Node.id == node_id,
                Node.owner_id == owner_id,
                Node.fortify_lvl == expected_lvl,
            )
            .values(fortify_lvl=expected_lvl + 1)
            .execution_options(**NO_SYNC)
        )
        with store_errors("set fortify level"):
            result = await session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def adjust_charge(
        player_id: str, delta: int, session: AsyncSession, min_result: int = 0
    ) -> ChargeAdjustment:
        """Add delta to the player's charge unless the result would drop below min_result.

        The floor is part of the WHERE clause, so a concurrent spend can never
        push the balance under it. Rejections are reported, never clamped.
        """
        stmt = (
            update(Player)
            .where(Player.id == player_id, Player.charge + delta >= min_result)
            .values(charge=Player.charge + delta)
            .returning(Player.charge)
            .execution_options(**NO_SYNC)
        )
        with store_errors("adjust charge"):
            result = await session.execute(stmt)
            charge = result.scalar_one_or_none()
        if charge is None:
            return ChargeAdjustment(applied=False)
        return ChargeAdjustment(applied=True, charge=int(charge))

    @staticmethod
    async def credit_income(
        player_id: str,
        expected_last_income_at: datetime,
        income: int,
        now: datetime,
        session: AsyncSession,
    ) -> bool:
        """Credit income and advance last_income_at in one conditional statement.

        Guarded by the observed last_income_at: if another pass already settled
        this window the statement matches nothing and no charge is added.
        """
        stmt = (
            update(Player)
            .where(Player.id == player_id, Player.last_income_at == expected_last_income_at)
            .values(charge=Player.charge + income, last_income_at=now)
            .execution_options(**NO_SYNC)
        )
        with store_errors("credit income"):
            result = await session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def increment_faction_score(
        week_start: date, red: int, blue: int, session: AsyncSession
    ) -> bool:
        """Add run totals onto the stored week row. False when the row does not exist yet."""
        stmt = (
            update(FactionScore)
            .where(FactionScore.week_start == week_start)
            .values(
                red_score=FactionScore.red_score + red,
                blue_score=FactionScore.blue_score + blue,
            )
            .execution_options(**NO_SYNC)
        )
        with store_errors("increment faction score"):
            result = await session.execute(stmt)
        return result.rowcount == 1


class DeleteData:
    @staticmethod
    async def delete_edge_if_owned(
        src_id: str, dst_id: str, owner_id: str, session: AsyncSession
    ) -> bool:
        """Remove the edge only if it is still owned by owner_id."""
        stmt = (
            delete(Edge)
            .where(Edge.src_id == src_id, Edge.dst_id == dst_id, Edge.owner_id == owner_id)
            .execution_options(**NO_SYNC)
        )
        with store_errors("delete edge"):
            result = await session.execute(stmt)
        return result.rowcount == 1


class CreateData:
    """Inserts used by account creation, world generation and the weekly score row."""

    @staticmethod
    async def create_player(player: PlayerSchema, session: AsyncSession) -> None:
        session.add(
            Player(
                id=player.id,
                handle=player.handle,
                faction=player.faction,
                charge=player.charge,
                last_income_at=player.last_income_at,
                ally_of=player.ally_of,
            )
        )
        with store_errors("create player"):
            await session.flush()

    @staticmethod
    async def create_node(node: NodeSchema, session: AsyncSession) -> None:
        session.add(
            Node(
                id=node.id,
                owner_id=node.owner_id,
                charge=node.charge,
                fortify_lvl=node.fortify_lvl,
                x=node.x,
                y=node.y,
            )
        )
        with store_errors("create node"):
            await session.flush()

    @staticmethod
    async def create_edge(edge: EdgeSchema, session: AsyncSession) -> None:
        session.add(Edge(src_id=edge.src_id, dst_id=edge.dst_id, owner_id=edge.owner_id))
        with store_errors("create edge"):
            await session.flush()

    @staticmethod
    async def create_faction_score(score: FactionScoreSchema, session: AsyncSession) -> None:
        """Insert a week row; raises IntegrityError if another pass created it first."""
        session.add(
            FactionScore(
                week_start=score.week_start,
                red_score=score.red_score,
                blue_score=score.blue_score,
            )
        )
        with store_errors("create faction score"):
            await session.flush()
