from pydantic import BaseModel, Field
from enum import Enum
from uuid import UUID
from typing import Any, Dict
from datetime import date
from uuid6 import uuid7


class FactionModel(str, Enum):
    red = "red"
    blue = "blue"


class EntityModel(str, Enum):
    node = "node"
    edge = "edge"


class OperationModel(str, Enum):
    upsert = "upsert"
    delete = "delete"


class CaptureRequestModel(BaseModel):
    node_id: str
    player_id: str


class FortifyRequestModel(BaseModel):
    node_id: str
    player_id: str


class RaidRequestModel(BaseModel):
    src_id: str
    dst_id: str
    player_id: str


class RaidResultModel(BaseModel):
    success: bool


class FactionTotalsModel(BaseModel):
    red: int = 0
    blue: int = 0


class ReconcileResultModel(BaseModel):
    success: bool
    processed: int
    faction_scores: FactionTotalsModel  # credited by this run
    week_start: date
    weekly_totals: FactionTotalsModel | None = None  # stored row after this run
    failed: int = 0


class ChangeEventModel(BaseModel):
    """Committed mutation of a node or edge, as delivered to subscribers.

    Delivery is at-least-once; subscribers dedupe on event_id.
    """

    event_id: UUID = Field(default_factory=uuid7)
    entity: EntityModel
    op: OperationModel
    payload: Dict[str, Any]

    @property
    def entity_key(self) -> str:
        if self.entity == EntityModel.node:
            return f"node:{self.payload['id']}"
        return f"edge:{self.payload['src_id']}:{self.payload['dst_id']}"
