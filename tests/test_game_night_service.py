"""Tests for the GameNight and Player request handlers."""
import pytest
from unittest.mock import AsyncMock

from app.domain.game_night import GameNight, Player
from app.domain.results import ConcurrencyConflict, Created, NotFound, Ok, ValidationFailed
from app.infrastructure.storage import ConcurrencyConflictError, MissingParentError
from app.services import game_nights, players


def spy_gateway():
    """Gateway double whose write path must never be touched."""
    return AsyncMock()


class TestCreateGameNight:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("minimum", [0, 1])
    async def test_rejects_too_few_players_without_writing(self, minimum):
        gateway = spy_gateway()

        outcome = await game_nights.create_game_night(
            gateway, GameNight(minimum_number_of_players=minimum)
        )

        assert isinstance(outcome, ValidationFailed)
        assert outcome.reason == "minimum-players-violation"
        gateway.insert_game_night.assert_not_called()

    @pytest.mark.asyncio
    async def test_id_is_assigned_by_storage(self, gateway):
        outcome = await game_nights.create_game_night(
            gateway, GameNight(id=42, minimum_number_of_players=2)
        )

        assert isinstance(outcome, Created)
        assert outcome.value.id == 1
        assert outcome.location_id == 1
        assert outcome.value.version == 1

    @pytest.mark.asyncio
    async def test_create_then_get_round_trips(self, gateway, game_night_payload):
        created = await game_nights.create_game_night(gateway, game_night_payload)

        fetched = await game_nights.get_game_night(gateway, created.location_id)

        assert isinstance(fetched, Ok)
        assert fetched.value.minimum_number_of_players == 4

    @pytest.mark.asyncio
    async def test_nested_players_are_created_with_parent_id(self, gateway):
        payload = GameNight(
            minimum_number_of_players=3,
            players=[Player(name="Ann"), Player(name="Bob", game_night_id=77)],
        )

        outcome = await game_nights.create_game_night(gateway, payload)

        assert [p.name for p in outcome.value.players] == ["Ann", "Bob"]
        assert {p.game_night_id for p in outcome.value.players} == {outcome.location_id}


class TestGetAndList:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing_id", [0, 1, 404, -3])
    async def test_get_missing_is_not_found(self, gateway, missing_id):
        outcome = await game_nights.get_game_night(gateway, missing_id)

        assert outcome == NotFound("GameNight", missing_id)

    @pytest.mark.asyncio
    async def test_get_excludes_players(self, gateway, game_night_payload, player_payload):
        created = await game_nights.create_game_night(gateway, game_night_payload)
        await players.create_player_for_game_night(gateway, created.location_id, player_payload)

        outcome = await game_nights.get_game_night(gateway, created.location_id)

        assert outcome.value.players == []

    @pytest.mark.asyncio
    async def test_list_includes_players_in_id_order(self, gateway, player_payload):
        for minimum in (5, 2, 9):
            await game_nights.create_game_night(gateway, GameNight(minimum_number_of_players=minimum))
        await players.create_player_for_game_night(gateway, 2, player_payload)

        outcome = await game_nights.list_game_nights(gateway)

        assert [n.id for n in outcome.value] == [1, 2, 3]
        assert [n.minimum_number_of_players for n in outcome.value] == [5, 2, 9]
        assert [p.name for p in outcome.value[1].players] == ["Ann"]

    @pytest.mark.asyncio
    async def test_list_empty(self, gateway):
        outcome = await game_nights.list_game_nights(gateway)

        assert outcome == Ok([])


class TestReplaceGameNight:

    @pytest.mark.asyncio
    async def test_id_mismatch_does_not_touch_storage(self):
        gateway = spy_gateway()

        outcome = await game_nights.replace_game_night(
            gateway, 7, GameNight(id=8, minimum_number_of_players=4)
        )

        assert isinstance(outcome, ValidationFailed)
        assert outcome.reason == "id-mismatch"
        gateway.update_game_night.assert_not_called()
        gateway.find_game_night.assert_not_called()

    @pytest.mark.asyncio
    async def test_too_few_players_does_not_write(self):
        gateway = spy_gateway()

        outcome = await game_nights.replace_game_night(
            gateway, 7, GameNight(id=7, minimum_number_of_players=1)
        )

        assert outcome.reason == "minimum-players-violation"
        gateway.update_game_night.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_version_does_not_write(self):
        gateway = spy_gateway()

        outcome = await game_nights.replace_game_night(
            gateway, 7, GameNight(id=7, minimum_number_of_players=4)
        )

        assert isinstance(outcome, ValidationFailed)
        assert outcome.reason == "version-required"
        gateway.update_game_night.assert_not_called()

    @pytest.mark.asyncio
    async def test_replace_returns_submitted_payload(self, gateway, game_night_payload):
        created = await game_nights.create_game_night(gateway, game_night_payload)
        payload = GameNight(id=created.location_id, minimum_number_of_players=6, version=1)

        outcome = await game_nights.replace_game_night(gateway, created.location_id, payload)

        assert outcome == Ok(payload)
        stored = await gateway.find_game_night(created.location_id)
        assert stored.minimum_number_of_players == 6
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_replace_result_drops_nested_players(self, gateway, game_night_payload):
        created = await game_nights.create_game_night(gateway, game_night_payload)
        payload = GameNight(
            id=created.location_id,
            minimum_number_of_players=4,
            version=1,
            players=[Player(name="Ghost")],
        )

        outcome = await game_nights.replace_game_night(gateway, created.location_id, payload)

        assert isinstance(outcome, Ok)
        assert outcome.value.players == []
        assert outcome.value.minimum_number_of_players == 4
        assert payload.players[0].name == "Ghost"

    @pytest.mark.asyncio
    async def test_replace_of_deleted_record_is_not_found(self, gateway, game_night_payload):
        created = await game_nights.create_game_night(gateway, game_night_payload)
        await game_nights.delete_game_night(gateway, created.location_id)

        outcome = await game_nights.replace_game_night(
            gateway,
            created.location_id,
            GameNight(id=created.location_id, minimum_number_of_players=4, version=1),
        )

        assert outcome == NotFound("GameNight", created.location_id)

    @pytest.mark.asyncio
    async def test_second_writer_with_stale_version_gets_conflict(self, gateway):
        for _ in range(7):
            await game_nights.create_game_night(gateway, GameNight(minimum_number_of_players=2))
        loaded_a = (await game_nights.get_game_night(gateway, 7)).value
        loaded_b = (await game_nights.get_game_night(gateway, 7)).value
        assert loaded_a.version == loaded_b.version == 1

        first = await game_nights.replace_game_night(
            gateway, 7, loaded_a.model_copy(update={"minimum_number_of_players": 3})
        )
        second = await game_nights.replace_game_night(
            gateway, 7, loaded_b.model_copy(update={"minimum_number_of_players": 8})
        )

        assert isinstance(first, Ok)
        assert second == ConcurrencyConflict("GameNight", 7, 1)
        stored = await gateway.find_game_night(7)
        assert stored.minimum_number_of_players == 3
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_conflict_is_not_retried(self):
        gateway = spy_gateway()
        gateway.update_game_night.side_effect = ConcurrencyConflictError(7, still_exists=True)

        outcome = await game_nights.replace_game_night(
            gateway, 7, GameNight(id=7, minimum_number_of_players=4, version=1)
        )

        assert isinstance(outcome, ConcurrencyConflict)
        assert gateway.update_game_night.await_count == 1


class TestDeleteGameNight:

    @pytest.mark.asyncio
    async def test_delete_returns_snapshot_then_not_found(self, gateway, game_night_payload):
        created = await game_nights.create_game_night(gateway, game_night_payload)

        first = await game_nights.delete_game_night(gateway, created.location_id)
        second = await game_nights.delete_game_night(gateway, created.location_id)

        assert isinstance(first, Ok)
        assert first.value.id == created.location_id
        assert first.value.minimum_number_of_players == 4
        assert second == NotFound("GameNight", created.location_id)

    @pytest.mark.asyncio
    async def test_delete_missing_does_not_write(self):
        gateway = spy_gateway()
        gateway.find_game_night.return_value = None

        outcome = await game_nights.delete_game_night(gateway, 12)

        assert outcome == NotFound("GameNight", 12)
        gateway.delete_game_night.assert_not_called()


class TestCreatePlayerForGameNight:

    @pytest.mark.asyncio
    async def test_path_id_overrides_payload(self, gateway, player_payload):
        for _ in range(3):
            await game_nights.create_game_night(gateway, GameNight(minimum_number_of_players=2))

        outcome = await players.create_player_for_game_night(gateway, 3, player_payload)

        assert isinstance(outcome, Ok)
        assert outcome.value.game_night_id == 3
        assert outcome.value.name == "Ann"
        assert outcome.value.id == 1
        # The caller's payload object is left untouched
        assert player_payload.game_night_id == 999

    @pytest.mark.asyncio
    async def test_missing_parent_is_not_found_without_insert(self):
        gateway = spy_gateway()
        gateway.find_game_night.return_value = None

        outcome = await players.create_player_for_game_night(gateway, 404, Player(name="Bob"))

        assert outcome == NotFound("GameNight", 404)
        gateway.insert_player.assert_not_called()

    @pytest.mark.asyncio
    async def test_parent_deleted_during_insert_is_not_found(self):
        gateway = spy_gateway()
        gateway.find_game_night.return_value = GameNight(id=3, minimum_number_of_players=2, version=1)
        gateway.insert_player.side_effect = MissingParentError(3)

        outcome = await players.create_player_for_game_night(gateway, 3, Player(name="Bob"))

        assert outcome == NotFound("GameNight", 3)
        gateway.insert_player.assert_awaited_once()
