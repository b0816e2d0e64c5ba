from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.schema import Column, ForeignKey, CheckConstraint
from sqlalchemy.types import Integer, String, Float, DateTime, Date
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class Player(Base):
    __tablename__ = "players"
    id = Column(String(36), primary_key=True)
    handle = Column(String(64), nullable=False)
    faction = Column(String(8), nullable=False)  # "red" | "blue"
    charge = Column(Integer, nullable=False, default=0)
    last_income_at = Column(DateTime, nullable=False, default=utcnow)
    ally_of = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint("charge >= 0", name="ck_players_charge_non_negative"),
        CheckConstraint("faction IN ('red', 'blue')", name="ck_players_faction"),
    )


class Node(Base):
    __tablename__ = "nodes"
    id = Column(String(36), primary_key=True)
    owner_id = Column(String(36), ForeignKey("players.id"), nullable=True, index=True)
    charge = Column(Integer, nullable=False, default=0)  # display only
    fortify_lvl = Column(Integer, nullable=False, default=0)
    x = Column(Float, nullable=False, default=0.0)
    y = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=utcnow)


class Edge(Base):
    __tablename__ = "edges"
    src_id = Column(String(36), ForeignKey("nodes.id"), primary_key=True)
    dst_id = Column(String(36), ForeignKey("nodes.id"), primary_key=True)
    owner_id = Column(String(36), ForeignKey("players.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class FactionScore(Base):
    __tablename__ = "faction_scores"
    week_start = Column(Date, primary_key=True)  # Sunday, UTC
    red_score = Column(Integer, nullable=False, default=0)
    blue_score = Column(Integer, nullable=False, default=0)
