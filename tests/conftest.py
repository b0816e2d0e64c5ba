from __future__ import annotations

from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from nodewar.db import build_engine, build_session_factory, init_db
from nodewar.domain.graph_rules import fortify_cost
from nodewar.models.dc_models import ChangeEventModel
from nodewar.models.schema_models import EdgeSchema, NodeSchema, PlayerSchema
from nodewar.notifier import InMemoryChangeNotifier
from nodewar.services.actions import ActionProcessor
from nodewar.services.graph_db import GraphDB
from nodewar.services.raid_outcome import fixed_outcome
from nodewar.services.reconciler import IncomeReconciler

# A Wednesday; its week bucket starts Sunday 2026-10-18.
NOW = datetime(2026, 10, 21, 12, 0, 0)


class RecordingChangeNotifier(InMemoryChangeNotifier):
    """In-memory notifier that also keeps every delivered event, in order."""

    def __init__(self):
        super().__init__()
        self.events: list[ChangeEventModel] = []

    async def _deliver(self, event: ChangeEventModel) -> None:
        self.events.append(event)
        await super()._deliver(event)


def fortify_total(levels: int) -> int:
    """Charge spent taking a fresh node to the given level."""
    return sum(fortify_cost(lvl) for lvl in range(levels))


def make_player(
    player_id: str,
    *,
    faction: str = "red",
    charge: int = 100,
    minutes_since_income: int = 0,
) -> PlayerSchema:
    return PlayerSchema(
        id=player_id,
        handle=f"{player_id}-handle",
        faction=faction,
        charge=charge,
        last_income_at=NOW - timedelta(minutes=minutes_since_income),
    )


def make_node(node_id: str, *, owner_id: str | None = None, fortify_lvl: int = 0) -> NodeSchema:
    return NodeSchema(id=node_id, owner_id=owner_id, fortify_lvl=fortify_lvl, x=1.0, y=2.0)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'graph.sqlite3'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def Session(engine):
    return build_session_factory(engine)


@pytest.fixture
def graph_db(Session) -> GraphDB:
    return GraphDB(Session)


@pytest.fixture
def notifier() -> RecordingChangeNotifier:
    return RecordingChangeNotifier()


@pytest.fixture
def processor(Session, notifier) -> ActionProcessor:
    return ActionProcessor(Session, notifier, raid_outcome=fixed_outcome(True))


@pytest.fixture
def reconciler(Session) -> IncomeReconciler:
    return IncomeReconciler(Session, clock=lambda: NOW)


@pytest_asyncio.fixture
async def world(graph_db):
    """Two red players, one blue player, four nodes and two edges.

    p1 (red, 100) owns n1; p2 (red, 5); rival (blue, 50) owns n4 and edge n3->n4.
    p1 owns edge n1->n2.
    """
    await graph_db.create_players(
        [
            make_player("p1", charge=100),
            make_player("p2", charge=5),
            make_player("rival", faction="blue", charge=50),
        ]
    )
    await graph_db.create_world(
        [
            make_node("n1", owner_id="p1"),
            make_node("n2"),
            make_node("n3"),
            make_node("n4", owner_id="rival"),
        ],
        [
            EdgeSchema(src_id="n1", dst_id="n2", owner_id="p1"),
            EdgeSchema(src_id="n3", dst_id="n4", owner_id="rival"),
            EdgeSchema(src_id="n2", dst_id="n3", owner_id=None),
        ],
    )
    return graph_db
