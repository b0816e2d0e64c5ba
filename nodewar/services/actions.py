"""Player actions: capture, fortify and raid.

Each action reads a snapshot, validates it, then applies its writes inside one
transaction where every statement is conditional on that snapshot. The charge
debit is issued first; if the ownership/level write then matches no row the
transaction is rolled back, so a losing request is never charged.
"""

import logging

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import async_sessionmaker

from nodewar.converter import DataConverter
from nodewar.crud import DeleteData, ReadData, UpdateData
from nodewar.domain.graph_rules import CAPTURE_COST, fortify_cost
from nodewar.errors import (
    ConflictError,
    EdgeNotFound,
    InsufficientChargeError,
    NodeNotFound,
    NotOwnerError,
    NotRaidableError,
    PlayerNotFound,
)
from nodewar.load_secrets import raid_success_probability
from nodewar.models.dc_models import ChangeEventModel, RaidResultModel
from nodewar.models.schema_models import EdgeSchema, NodeSchema, PlayerSchema
from nodewar.notifier import ChangeNotifier
from nodewar.services.raid_outcome import RaidOutcome, UniformRaidOutcome

data_converter = DataConverter()


class ActionProcessor:
    def __init__(
        self,
        Session: async_sessionmaker,
        notifier: ChangeNotifier,
        raid_outcome: RaidOutcome | None = None,
    ):
        self.Session: async_sessionmaker = Session
        self.notifier: ChangeNotifier = notifier
        self.raid_outcome: RaidOutcome = raid_outcome or UniformRaidOutcome(raid_success_probability)

    async def _read_node_and_player(self, node_id: str, player_id: str) -> tuple[NodeSchema, PlayerSchema]:
        async with self.Session() as session:
            node = await ReadData.read_node(node_id, session)
            player = await ReadData.read_player(player_id, session)
        if node is None:
            raise NodeNotFound(node_id)
        if player is None:
            raise PlayerNotFound(player_id)
        return node, player

    async def _read_committed_node(self, node_id: str) -> NodeSchema:
        async with self.Session() as session:
            node = await ReadData.read_node(node_id, session)
        if node is None:
            raise NodeNotFound(node_id)
        return node

    async def _notify(self, event: ChangeEventModel) -> None:
        # The mutation is already committed; a transport failure must not fail the request.
        try:
            await self.notifier.publish(event)
        except RedisError as e:
            logging.error(f"Failed to publish {event.entity_key} change: {e}")

    async def capture(self, node_id: str, player_id: str) -> NodeSchema:
        """Claim a neutral node for player_id, paying CAPTURE_COST.

        Args:
            node_id (str): Node to claim
            player_id (str): Acting player

        Raises:
            NodeNotFound, PlayerNotFound: Unknown node or player
            InsufficientChargeError: Charge below CAPTURE_COST (nothing written)
            ConflictError: The node is owned, or another capture won the race

        Returns:
            NodeSchema: The node as committed
        """
        node, player = await self._read_node_and_player(node_id, player_id)
        if node.owner_id is not None:
            raise ConflictError(f"Node {node_id} is already owned")
        if player.charge < CAPTURE_COST:
            raise InsufficientChargeError(player_id, CAPTURE_COST, player.charge)

        async with self.Session() as session:
            async with session.begin():
                debit = await UpdateData.adjust_charge(player_id, -CAPTURE_COST, session)
                if not debit.applied:
                    raise InsufficientChargeError(player_id, CAPTURE_COST)
                captured = await UpdateData.compare_and_set_node_owner(node_id, None, player_id, session)
                if not captured:
                    logging.info(f"Capture of {node_id} by {player_id} lost the race")
                    raise ConflictError(f"Node {node_id} was captured concurrently")

        logging.info(f"Player {player_id} captured node {node_id} (charge now {debit.charge})")
        node = await self._read_committed_node(node_id)
        await self._notify(data_converter.convert_node_to_upsert_event(node))
        return node

    async def fortify(self, node_id: str, player_id: str) -> NodeSchema:
        """Raise an owned node's fortify level by one.

        The cost is taken from the level observed in the snapshot and the level
        write is conditional on that same level, so a concurrent fortify turns
        this one into a Conflict instead of applying a stale price.
        """
        node, player = await self._read_node_and_player(node_id, player_id)
        if node.owner_id != player_id:
            raise NotOwnerError(f"Player {player_id} does not own node {node_id}")
        cost = fortify_cost(node.fortify_lvl)
        if player.charge < cost:
            raise InsufficientChargeError(player_id, cost, player.charge)

        async with self.Session() as session:
            async with session.begin():
                debit = await UpdateData.adjust_charge(player_id, -cost, session)
                if not debit.applied:
                    raise InsufficientChargeError(player_id, cost)
                raised = await UpdateData.compare_and_set_fortify_level(
                    node_id, player_id, node.fortify_lvl, session
                )
                if not raised:
                    logging.info(f"Fortify of {node_id} at level {node.fortify_lvl} lost the race")
                    raise ConflictError(f"Node {node_id} changed while fortifying")

        logging.info(
            f"Player {player_id} fortified node {node_id} to level {node.fortify_lvl + 1} for {cost}"
        )
        node = await self._read_committed_node(node_id)
        await self._notify(data_converter.convert_node_to_upsert_event(node))
        return node

    async def raid(self, src_id: str, dst_id: str, player_id: str) -> RaidResultModel:
        """Try to destroy a rival-owned edge.

        A failed raid writes nothing and costs nothing. A successful one deletes
        the edge, conditional on it still belonging to the owner observed here.
        """
        async with self.Session() as session:
            edge: EdgeSchema | None = await ReadData.read_edge(src_id, dst_id, session)
            player = await ReadData.read_player(player_id, session)
        if edge is None:
            raise EdgeNotFound(src_id, dst_id)
        if player is None:
            raise PlayerNotFound(player_id)
        if edge.owner_id is None:
            raise NotRaidableError(f"Edge {src_id}->{dst_id} is not owned")
        if edge.owner_id == player_id:
            raise NotRaidableError(f"Edge {src_id}->{dst_id} belongs to the raider")

        if not self.raid_outcome(edge, player_id):
            logging.info(f"Raid on {src_id}->{dst_id} by {player_id} failed")
            return RaidResultModel(success=False)

        async with self.Session() as session:
            async with session.begin():
                removed = await DeleteData.delete_edge_if_owned(src_id, dst_id, edge.owner_id, session)
                if not removed:
                    raise ConflictError(f"Edge {src_id}->{dst_id} changed during the raid")

        logging.info(f"Raid on {src_id}->{dst_id} by {player_id} destroyed the edge")
        await self._notify(data_converter.convert_edge_to_delete_event(edge))
        return RaidResultModel(success=True)
