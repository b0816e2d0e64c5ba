from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime


class PlayerSchema(BaseModel):
    id: str
    handle: str
    faction: str
    charge: int
    last_income_at: datetime
    ally_of: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NodeSchema(BaseModel):
    id: str
    owner_id: str | None = None
    charge: int = 0
    fortify_lvl: int = 0
    x: float = 0.0
    y: float = 0.0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EdgeSchema(BaseModel):
    src_id: str
    dst_id: str
    owner_id: str | None = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FactionScoreSchema(BaseModel):
    week_start: date
    red_score: int
    blue_score: int

    class Config:
        from_attributes = True


class ChargeAdjustment(BaseModel):
    """Outcome of a conditional charge change.

    applied is False when the change would have taken the charge below the
    floor (or the player does not exist); charge is then None.
    """

    applied: bool
    charge: int | None = None
