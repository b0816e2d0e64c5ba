"""Idle-income settlement.

Every pass credits each player ``owned nodes * whole minutes since
last_income_at``, moves last_income_at to the pass time and adds the income
onto the current week's faction leaderboard row. The three writes share one
transaction per player, so a window is either fully settled (charge and
leaderboard) or left untouched for the next pass.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from nodewar.crud import CreateData, ReadData, UpdateData
from nodewar.domain.graph_rules import elapsed_minutes, income_for, to_naive_utc, week_start
from nodewar.errors import ConflictError, ReconciliationInProgress, TransientStoreError
from nodewar.models.dc_models import FactionTotalsModel, ReconcileResultModel
from nodewar.models.schema_models import FactionScoreSchema, PlayerSchema
from nodewar.models.schemas import utcnow
from nodewar.retry import with_retry


class IncomeReconciler:
    def __init__(self, Session: async_sessionmaker, clock: Callable[[], datetime] = utcnow):
        self.Session: async_sessionmaker = Session
        self.clock = clock
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def reconcile(self, now: datetime | None = None) -> ReconcileResultModel:
        """Run one settlement pass.

        Args:
            now (datetime, optional): Pass time; defaults to the reconciler clock

        Raises:
            ReconciliationInProgress: Another pass in this process has not finished

        Returns:
            ReconcileResultModel: Players credited and faction totals of this run
        """
        if self._lock.locked():
            raise ReconciliationInProgress("A reconciliation pass is already running")
        async with self._lock:
            return await self._reconcile(to_naive_utc(now or self.clock()))

    async def _reconcile(self, now: datetime) -> ReconcileResultModel:
        week = week_start(now)
        totals: Dict[str, int] = {"red": 0, "blue": 0}
        try:
            await with_retry(
                lambda: self.open_week(week),
                label=f"faction score {week}",
                retry_on=(ConflictError, TransientStoreError),
            )
        except (ConflictError, TransientStoreError) as e:
            # Nothing was credited, so the next pass settles the whole window.
            logging.error(f"Reconciliation at {now.isoformat()} skipped, no score row for {week}: {e}")
            return ReconcileResultModel(
                success=False,
                processed=0,
                faction_scores=FactionTotalsModel(red=0, blue=0),
                week_start=week,
            )

        async with self.Session() as session:
            players = await ReadData.read_players(session)

        processed = 0
        failed = 0
        for player in players:
            try:
                income = await self.settle_player(player, now)
            except (ConflictError, TransientStoreError) as e:
                # last_income_at is untouched, so the next pass covers this window.
                failed += 1
                logging.warning(f"Income for player {player.id} deferred to next run: {e}")
                continue
            if income is None:
                continue
            processed += 1
            totals[player.faction] = totals.get(player.faction, 0) + income

        async with self.Session() as session:
            weekly = await ReadData.read_faction_score(week, session)

        logging.info(
            f"Reconciliation at {now.isoformat()}: processed={processed} failed={failed} "
            f"red={totals['red']} blue={totals['blue']}"
        )
        return ReconcileResultModel(
            success=True,
            processed=processed,
            faction_scores=FactionTotalsModel(red=totals["red"], blue=totals["blue"]),
            week_start=week,
            weekly_totals=(
                FactionTotalsModel(red=weekly.red_score, blue=weekly.blue_score)
                if weekly is not None
                else None
            ),
            failed=failed,
        )

    async def settle_player(self, player: PlayerSchema, now: datetime) -> int | None:
        """Credit one player's idle income and add it to the faction's week score.

        Returns:
            int | None: Income credited, or None when less than a minute has passed

        Raises:
            ConflictError: last_income_at moved since it was read (already settled)
            TransientStoreError: The week row is missing or the store failed; nothing was written
        """
        minutes = elapsed_minutes(now, player.last_income_at)
        if minutes < 1:
            return None

        async with self.Session() as session:
            owned = await ReadData.count_owned_nodes(player.id, session)
        income = income_for(owned, minutes)
        week = week_start(now)
        red = income if player.faction == "red" else 0
        blue = income if player.faction == "blue" else 0

        async with self.Session() as session:
            async with session.begin():
                credited = await UpdateData.credit_income(
                    player.id, player.last_income_at, income, now, session
                )
                if not credited:
                    raise ConflictError(f"Player {player.id} was settled concurrently")
                if income and not await UpdateData.increment_faction_score(week, red, blue, session):
                    raise TransientStoreError(f"Faction score row for {week} is missing")
        logging.debug(f"Credited {income} to {player.id} for {minutes} min over {owned} nodes")
        return income

    async def open_week(self, week: date) -> FactionScoreSchema:
        """Make sure the week row exists so per-player increments have a target."""
        async with self.Session() as session:
            score = await ReadData.read_faction_score(week, session)
        if score is not None:
            return score
        async with self.Session() as session:
            try:
                async with session.begin():
                    await CreateData.create_faction_score(
                        FactionScoreSchema(week_start=week, red_score=0, blue_score=0), session
                    )
            except IntegrityError:
                logging.debug(f"Faction score row for {week} opened by another pass")
            score = await ReadData.read_faction_score(week, session)
        if score is None:
            raise TransientStoreError(f"Faction score row for {week} missing after write")
        logging.info(f"Opened faction score row for week {week}")
        return score
