"""Tests for the MTGJSON bulk importer."""

import json
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sparkarcanum.errors import BulkDataError, MissingIdentifierError
from sparkarcanum.importers.mtgjson import (
    CARD_COLUMNS,
    METADATA_ID,
    import_all_printings,
    import_document,
    load_all_printings,
    map_card,
)
from sparkarcanum.models.db import CardDB, CardSetDB, DbMetadataDB

SET_DATA = {"name": "Limited Edition Alpha", "code": "LEA"}


async def count_cards(session_factory: async_sessionmaker[AsyncSession]) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(CardDB))


async def fetch_card(
    session_factory: async_sessionmaker[AsyncSession], card_uuid: str
) -> CardDB | None:
    async with session_factory() as session:
        return await session.get(CardDB, card_uuid)


class TestLoadAllPrintings:
    def test_loads_document(self, all_printings_path: Path) -> None:
        document = load_all_printings(all_printings_path)

        assert set(document["data"]) == {"LEA", "M10"}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(BulkDataError):
            load_all_printings(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "AllPrintings.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(BulkDataError):
            load_all_printings(path)

    @pytest.mark.parametrize("payload", [[], {"meta": {}}, {"data": []}])
    def test_wrong_shape(self, tmp_path: Path, payload: Any) -> None:
        path = tmp_path / "AllPrintings.json"
        path.write_text(json.dumps(payload), encoding="utf-8")

        with pytest.raises(BulkDataError):
            load_all_printings(path)


class TestMapCard:
    def test_every_column_present(self) -> None:
        """Sparse cards still produce an explicit value for every column."""
        row = map_card({"uuid": "u1", "name": "Zap"}, SET_DATA)

        assert set(row) == CARD_COLUMNS

    def test_defaults(self) -> None:
        row = map_card({"uuid": "u1", "name": "Zap"}, SET_DATA)

        assert row["mana_cost"] is None
        assert row["colors"] == []
        assert row["keywords"] == []
        assert row["is_reprint"] is False
        assert row["legalities"] is None
        assert row["scryfall_id"] is None

    def test_identifiers_flattened(self) -> None:
        raw = {
            "uuid": "u1",
            "name": "Zap",
            "identifiers": {"scryfallId": "sf-1", "multiverseId": "209", "mtgArenaId": "7001"},
        }

        row = map_card(raw, SET_DATA)

        assert row["scryfall_id"] == "sf-1"
        assert row["multiverse_id"] == 209
        assert row["mtg_arena_id"] == 7001
        assert row["multiverseid"] == "209"

    def test_set_fallbacks(self) -> None:
        row = map_card({"uuid": "u1", "name": "Zap"}, SET_DATA)

        assert row["set_code"] == "LEA"
        assert row["set_name"] == "Limited Edition Alpha"

    def test_card_set_code_wins(self) -> None:
        row = map_card({"uuid": "u1", "name": "Zap", "setCode": "PLEA"}, SET_DATA)

        assert row["set_code"] == "PLEA"

    def test_mana_value_and_cmc_fill_each_other(self) -> None:
        assert map_card({"uuid": "u1", "manaValue": 3.0}, SET_DATA)["cmc"] == 3.0
        assert map_card({"uuid": "u2", "cmc": 2.0}, SET_DATA)["mana_value"] == 2.0

    def test_zero_mana_value_kept(self) -> None:
        row = map_card({"uuid": "u1", "manaValue": 0, "cmc": 5}, SET_DATA)

        assert row["mana_value"] == 0
        assert row["cmc"] == 5

    def test_saltiness_stored_as_text(self) -> None:
        row = map_card({"uuid": "u1", "edhrecSaltiness": 0.42}, SET_DATA)

        assert row["edhrec_saltiness"] == "0.42"

    def test_id_mirrors_uuid(self) -> None:
        assert map_card({"uuid": "u1"}, SET_DATA)["id"] == "u1"

    def test_missing_uuid_raises(self) -> None:
        with pytest.raises(MissingIdentifierError) as exc_info:
            map_card({"name": "Nameless One"}, SET_DATA)

        assert exc_info.value.card_name == "Nameless One"
        assert exc_info.value.set_code == "LEA"


class TestImportAllPrintings:
    async def test_imports_every_card(self, session_factory, all_printings_path: Path) -> None:
        summary = await import_all_printings(session_factory, all_printings_path)

        assert summary.processed == 5
        assert summary.upserted == 5
        assert summary.errors == 0
        assert summary.sets == 2
        assert await count_cards(session_factory) == 5

    async def test_maps_fields(self, session_factory, all_printings_path: Path) -> None:
        await import_all_printings(session_factory, all_printings_path)

        card = await fetch_card(session_factory, "lea-bolt")

        assert card is not None
        assert card.name == "Lightning Bolt"
        assert card.set_code == "LEA"
        assert card.rarity == "common"
        assert card.colors == ["R"]
        assert card.legalities == {"vintage": "Legal", "legacy": "Legal"}
        assert card.multiverse_id == 209
        assert card.created_at is not None

    async def test_writes_sets(self, session_factory, all_printings_path: Path) -> None:
        await import_all_printings(session_factory, all_printings_path)

        async with session_factory() as session:
            card_set = await session.get(CardSetDB, "M10")

        assert card_set is not None
        assert card_set.name == "Magic 2010"
        assert card_set.total_cards == 3
        assert card_set.release_date.isoformat() == "2009-07-17"

    async def test_writes_metadata(self, session_factory, all_printings_path: Path) -> None:
        await import_all_printings(session_factory, all_printings_path)

        async with session_factory() as session:
            metadata = await session.get(DbMetadataDB, METADATA_ID)

        assert metadata is not None
        assert metadata.total_cards == 5
        assert metadata.description == "Complete MTGJSON import - 5 cards from AllPrintings.json"
        assert metadata.last_updated is not None

    async def test_rerun_is_idempotent(self, session_factory, all_printings_path: Path) -> None:
        """A second import of the same file changes nothing."""
        await import_all_printings(session_factory, all_printings_path)
        before = await fetch_card(session_factory, "lea-shivan")

        summary = await import_all_printings(session_factory, all_printings_path)
        after = await fetch_card(session_factory, "lea-shivan")

        assert summary.errors == 0
        assert await count_cards(session_factory) == 5
        for column in CARD_COLUMNS:
            assert getattr(after, column) == getattr(before, column)

    async def test_upsert_replaces_whole_row(self, session_factory, sample_document) -> None:
        """Fields missing from the new record are cleared, not merged."""
        await import_document(session_factory, sample_document)

        card = sample_document["data"]["LEA"]["cards"][0]
        card["text"] = "Deal 3 damage."
        del card["colors"]
        await import_document(session_factory, sample_document)

        updated = await fetch_card(session_factory, "lea-bolt")
        assert updated.text == "Deal 3 damage."
        assert updated.colors == []

    async def test_bad_record_does_not_stop_batch(self, session_factory, sample_document) -> None:
        """A row that violates a constraint is counted and the rest still commit."""
        cards = sample_document["data"]["LEA"]["cards"]
        cards.insert(1, {"uuid": "broken", "number": "999"})  # no name: NOT NULL fails

        summary = await import_document(session_factory, sample_document, batch_size=10)

        assert summary.processed == 6
        assert summary.errors == 1
        assert summary.upserted == 5
        assert await fetch_card(session_factory, "broken") is None
        assert await fetch_card(session_factory, "lea-shivan") is not None

    async def test_malformed_fields_skip_only_that_card(self, session_factory) -> None:
        """Cards with wrongly typed fields are counted as errors; the rest are written."""
        document = {
            "data": {
                "TST": {
                    "name": "Test Set",
                    "code": "TST",
                    "cards": [
                        {"uuid": "u1", "name": "Good Card"},
                        {"uuid": "u2", "name": "Bad Colors", "colors": 5},
                        {"uuid": "u3", "name": "Bad Identifiers", "identifiers": ["x"]},
                    ],
                }
            }
        }

        summary = await import_document(session_factory, document, batch_size=100)

        assert summary.processed == 3
        assert summary.errors == 2
        assert summary.upserted == 1
        assert await fetch_card(session_factory, "u1") is not None
        assert await count_cards(session_factory) == 1

    async def test_missing_uuid_aborts_before_its_batch(self, session_factory) -> None:
        """An earlier batch stays committed; the malformed card's batch is never written."""
        document = {
            "data": {
                "TST": {
                    "name": "Test Set",
                    "code": "TST",
                    "cards": [
                        {"uuid": "u1", "name": "First Card"},
                        {"name": "No Identifier"},
                    ],
                }
            }
        }

        with pytest.raises(MissingIdentifierError):
            await import_document(session_factory, document, batch_size=1)

        assert await fetch_card(session_factory, "u1") is not None
        assert await count_cards(session_factory) == 1

    async def test_missing_uuid_in_same_batch_writes_nothing(self, session_factory) -> None:
        document = {
            "data": {
                "TST": {
                    "name": "Test Set",
                    "code": "TST",
                    "cards": [{"uuid": "u1", "name": "First Card"}, {"name": "No Identifier"}],
                }
            }
        }

        with pytest.raises(MissingIdentifierError):
            await import_document(session_factory, document, batch_size=100)

        assert await count_cards(session_factory) == 0

    async def test_unreadable_file_propagates(self, session_factory, tmp_path: Path) -> None:
        path = tmp_path / "AllPrintings.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(BulkDataError):
            await import_all_printings(session_factory, path)

    async def test_rejects_non_positive_batch_size(self, session_factory, sample_document) -> None:
        with pytest.raises(ValueError):
            await import_document(session_factory, sample_document, batch_size=0)
