from datetime import date, timedelta

from nodewar.crud import CreateData, DeleteData, ReadData, UpdateData
from nodewar.models.schema_models import FactionScoreSchema
from tests.conftest import NOW


async def test_adjust_charge_rejects_overdraw_without_clamping(Session, world) -> None:
    async with Session() as session:
        async with session.begin():
            result = await UpdateData.adjust_charge("p2", -10, session)
        player = await ReadData.read_player("p2", session)

    assert result.applied is False
    assert result.charge is None
    assert player.charge == 5


async def test_adjust_charge_allows_spending_to_exactly_zero(Session, world) -> None:
    async with Session() as session:
        async with session.begin():
            result = await UpdateData.adjust_charge("p2", -5, session)
        player = await ReadData.read_player("p2", session)

    assert result.applied is True
    assert result.charge == 0
    assert player.charge == 0


async def test_adjust_charge_honours_custom_floor(Session, world) -> None:
    async with Session() as session:
        async with session.begin():
            rejected = await UpdateData.adjust_charge("p1", -60, session, min_result=50)
            accepted = await UpdateData.adjust_charge("p1", -50, session, min_result=50)

    assert rejected.applied is False
    assert accepted.applied is True
    assert accepted.charge == 50


async def test_adjust_charge_unknown_player_is_not_applied(Session, world) -> None:
    async with Session() as session:
        async with session.begin():
            result = await UpdateData.adjust_charge("ghost", 10, session)
    assert result.applied is False


async def test_compare_and_set_node_owner_only_from_expected(Session, world) -> None:
    async with Session() as session:
        async with session.begin():
            assert await UpdateData.compare_and_set_node_owner("n2", None, "p1", session)
            assert not await UpdateData.compare_and_set_node_owner("n2", None, "p2", session)
        node = await ReadData.read_node("n2", session)
    assert node.owner_id == "p1"


async def test_compare_and_set_fortify_level_requires_owner_and_level(Session, world) -> None:
    async with Session() as session:
        async with session.begin():
            assert not await UpdateData.compare_and_set_fortify_level("n1", "p2", 0, session)
            assert not await UpdateData.compare_and_set_fortify_level("n1", "p1", 3, session)
            assert await UpdateData.compare_and_set_fortify_level("n1", "p1", 0, session)
            assert not await UpdateData.compare_and_set_fortify_level("n1", "p1", 0, session)
        node = await ReadData.read_node("n1", session)
    assert node.fortify_lvl == 1


async def test_delete_edge_if_owned(Session, world) -> None:
    async with Session() as session:
        async with session.begin():
            assert not await DeleteData.delete_edge_if_owned("n3", "n4", "p1", session)
            assert await DeleteData.delete_edge_if_owned("n3", "n4", "rival", session)
        assert await ReadData.read_edge("n3", "n4", session) is None
        assert await ReadData.read_edge("n1", "n2", session) is not None


async def test_credit_income_guarded_by_last_income_at(Session, world) -> None:
    later = NOW + timedelta(minutes=5)
    async with Session() as session:
        async with session.begin():
            assert await UpdateData.credit_income("p1", NOW, 5, later, session)
            assert not await UpdateData.credit_income("p1", NOW, 5, later, session)
        player = await ReadData.read_player("p1", session)
    assert player.charge == 105
    assert player.last_income_at == later


async def test_count_owned_nodes(Session, world) -> None:
    async with Session() as session:
        assert await ReadData.count_owned_nodes("p1", session) == 1
        assert await ReadData.count_owned_nodes("p2", session) == 0


async def test_increment_faction_score_needs_an_existing_row(Session, world) -> None:
    week = date(2026, 10, 18)
    async with Session() as session:
        async with session.begin():
            assert not await UpdateData.increment_faction_score(week, 5, 1, session)
            await CreateData.create_faction_score(
                FactionScoreSchema(week_start=week, red_score=0, blue_score=0), session
            )
            assert await UpdateData.increment_faction_score(week, 5, 1, session)
            assert await UpdateData.increment_faction_score(week, 2, 0, session)
        score = await ReadData.read_faction_score(week, session)
    assert (score.red_score, score.blue_score) == (7, 1)
