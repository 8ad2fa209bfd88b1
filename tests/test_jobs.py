"""Tests for scheduled jobs."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx
from sqlalchemy import select

from sparkarcanum.jobs import import_cards, repair_rarities, update_rules
from sparkarcanum.jobs.import_cards import run_card_import
from sparkarcanum.jobs.repair_rarities import run_card_rarity_repair, run_rarity_repair
from sparkarcanum.jobs.update_rules import run_rules_update
from sparkarcanum.models.db import CardDB, RuleDB
from sparkarcanum.models.summary import BackfillTally, ImportSummary, RulesSyncSummary

SCRYFALL = "https://api.scryfall.com"


async def add_card(session_factory, **fields) -> None:
    async with session_factory() as session:
        session.add(CardDB(**fields))
        await session.commit()


async def stored_rarity(session_factory, card_uuid: str) -> str | None:
    async with session_factory() as session:
        card = await session.get(CardDB, card_uuid)
        return card.rarity


class TestRunCardImport:
    async def test_imports_existing_file(self, session_factory, all_printings_path: Path) -> None:
        """A local copy is used without touching the network."""
        with respx.mock(assert_all_called=False) as mock:
            network = mock.route()
            summary = await run_card_import(all_printings_path, session_factory=session_factory)

        assert summary.upserted == 5
        assert not network.called

    async def test_downloads_when_missing(
        self, session_factory, tmp_path: Path, sample_document
    ) -> None:
        path = tmp_path / "AllPrintings.json"
        url = "https://mtgjson.example/AllPrintings.json"

        with (
            patch("sparkarcanum.services.bulk_data.settings.all_printings_url", url),
            respx.mock,
        ):
            respx.get(url).mock(return_value=httpx.Response(200, json=sample_document))
            summary = await run_card_import(path, session_factory=session_factory)

        assert path.exists()
        assert summary.processed == 5

    async def test_uses_default_session_factory(self, session_factory, all_printings_path) -> None:
        with patch("sparkarcanum.jobs.import_cards.async_session_factory", session_factory):
            summary = await run_card_import(all_printings_path)

        assert summary.sets == 2

    def test_main(self) -> None:
        """The CLI prepares the schema, then imports with the given options."""
        with (
            patch("sparkarcanum.jobs.import_cards.init_db", new_callable=AsyncMock) as mock_init,
            patch(
                "sparkarcanum.jobs.import_cards.run_card_import",
                new_callable=AsyncMock,
                return_value=ImportSummary(processed=1, upserted=1),
            ) as mock_run,
        ):
            import_cards.main(["--path", "/tmp/ap.json", "--download", "--batch-size", "50"])

        mock_init.assert_awaited_once()
        mock_run.assert_awaited_once_with(Path("/tmp/ap.json"), True, batch_size=50)


class TestRunRarityRepair:
    async def test_backfills_from_bulk(
        self, session_factory, data_dir: Path, all_printings_path: Path
    ) -> None:
        await add_card(
            session_factory, uuid="x1", name="Shivan Dragon", set_code="M10", number="154"
        )

        tally = await run_rarity_repair(session_factory=session_factory)

        assert tally.updated == 1
        assert tally.sources == {"bulk": 1}
        assert await stored_rarity(session_factory, "x1") == "rare"
        cache = json.loads((data_dir / "rarity-cache.json").read_text(encoding="utf-8"))
        assert cache == {"x1": "rare"}

    async def test_failed_download_falls_back(self, session_factory, data_dir: Path) -> None:
        """Without AllPrintings the remote lookup runs, then the heuristic."""
        await add_card(
            session_factory,
            uuid="x1",
            name="Grizzly Bears",
            set_code="LEA",
            type="Creature — Bear",
            mana_cost="{1}{G}",
        )

        with respx.mock(assert_all_called=False) as mock:
            mock.get(url__regex=r"https://mtgjson\.com/.*").mock(
                side_effect=httpx.ConnectError("down")
            )
            mock.get(url__startswith=f"{SCRYFALL}/cards/named").mock(
                return_value=httpx.Response(404)
            )
            tally = await run_rarity_repair(session_factory=session_factory, download=True)

        assert tally.updated == 1
        assert tally.sources == {"heuristic": 1}
        assert not (data_dir / "AllPrintings.json").exists()

    async def test_single_card_skips_heuristic(self, session_factory, data_dir: Path) -> None:
        await add_card(session_factory, uuid="x1", name="Unknown Thing", set_code="TST")

        with respx.mock:
            respx.get(url__startswith=f"{SCRYFALL}/cards/named").mock(
                return_value=httpx.Response(404)
            )
            tally = await run_card_rarity_repair("x1", session_factory=session_factory)

        assert tally.errors == 1
        assert await stored_rarity(session_factory, "x1") is None

    async def test_single_card_not_found(self, session_factory, data_dir: Path) -> None:
        assert await run_card_rarity_repair("missing", session_factory=session_factory) is None

    def test_main_single_card_not_found(self) -> None:
        with patch(
            "sparkarcanum.jobs.repair_rarities.run_card_rarity_repair",
            new_callable=AsyncMock,
            return_value=None,
        ):
            with pytest.raises(SystemExit) as exc_info:
                repair_rarities.main(["--card", "missing"])

        assert exc_info.value.code == 1

    def test_main_full_run(self) -> None:
        with patch(
            "sparkarcanum.jobs.repair_rarities.run_rarity_repair",
            new_callable=AsyncMock,
            return_value=BackfillTally(),
        ) as mock_run:
            repair_rarities.main(["--download"])

        mock_run.assert_awaited_once_with(download=True)


class TestRunRulesUpdate:
    async def test_from_local_file(
        self, session_factory, tmp_path: Path, sample_rules_text: str
    ) -> None:
        path = tmp_path / "rules.txt"
        path.write_text(sample_rules_text, encoding="utf-8")

        summary = await run_rules_update(path, session_factory=session_factory)

        assert summary.inserted == 5
        async with session_factory() as session:
            result = await session.execute(select(RuleDB.rule_number).order_by(RuleDB.rule_number))
            assert result.scalars().all() == ["100.1", "100.1a", "100.2", "702.19", "702.19b"]

    @respx.mock
    async def test_downloads(self, session_factory, sample_rules_text: str) -> None:
        url = "https://rules.example/comp-rules.txt"
        respx.get(url).mock(return_value=httpx.Response(200, text=sample_rules_text))

        summary = await run_rules_update(url=url, session_factory=session_factory)

        assert summary.total == 5

    async def test_empty_text_syncs_nothing(self, session_factory, tmp_path: Path) -> None:
        path = tmp_path / "rules.txt"
        path.write_text("Nothing to see here.\n", encoding="utf-8")

        summary = await run_rules_update(path, session_factory=session_factory)

        assert summary == RulesSyncSummary()

    @respx.mock
    async def test_download_error_propagates(self, session_factory) -> None:
        url = "https://rules.example/comp-rules.txt"
        respx.get(url).mock(return_value=httpx.Response(503))

        with pytest.raises(httpx.HTTPStatusError):
            await run_rules_update(url=url, session_factory=session_factory)

    def test_main(self) -> None:
        with (
            patch("sparkarcanum.jobs.update_rules.init_db", new_callable=AsyncMock),
            patch(
                "sparkarcanum.jobs.update_rules.run_rules_update",
                new_callable=AsyncMock,
                return_value=RulesSyncSummary(inserted=3),
            ) as mock_run,
        ):
            update_rules.main(["--url", "https://rules.example/r.txt"])

        mock_run.assert_awaited_once_with(None, "https://rules.example/r.txt")
