"""Tests for AllPrintings acquisition."""

from pathlib import Path

import httpx
import pytest
import respx

from sparkarcanum.services.bulk_data import (
    USER_AGENT,
    download_all_printings,
    ensure_all_printings,
)

URL = "https://mtgjson.example/AllPrintings.json"


class TestDownloadAllPrintings:
    @respx.mock
    async def test_streams_to_file(self, tmp_path: Path) -> None:
        route = respx.get(URL).mock(return_value=httpx.Response(200, content=b'{"data": {}}'))
        output = tmp_path / "nested" / "AllPrintings.json"

        path = await download_all_printings(output, URL)

        assert path == output
        assert output.read_bytes() == b'{"data": {}}'
        assert route.calls.last.request.headers["User-Agent"] == USER_AGENT
        assert not (output.parent / "AllPrintings.json.part").exists()

    @respx.mock
    async def test_error_status_leaves_no_file(self, tmp_path: Path) -> None:
        respx.get(URL).mock(return_value=httpx.Response(500))
        output = tmp_path / "AllPrintings.json"

        with pytest.raises(httpx.HTTPStatusError):
            await download_all_printings(output, URL)

        assert list(tmp_path.iterdir()) == []

    @respx.mock
    async def test_failed_download_keeps_previous_copy(self, tmp_path: Path) -> None:
        """An interrupted download never clobbers the file already in place."""
        respx.get(URL).mock(side_effect=httpx.ReadTimeout("slow"))
        output = tmp_path / "AllPrintings.json"
        output.write_text('{"data": {"OLD": {}}}', encoding="utf-8")

        with pytest.raises(httpx.ReadTimeout):
            await download_all_printings(output, URL)

        assert output.read_text(encoding="utf-8") == '{"data": {"OLD": {}}}'
        assert [p.name for p in tmp_path.iterdir()] == ["AllPrintings.json"]


class TestEnsureAllPrintings:
    async def test_existing_file_not_downloaded(self, all_printings_path: Path) -> None:
        with respx.mock(assert_all_called=False) as mock:
            network = mock.route()
            path = await ensure_all_printings(all_printings_path, URL)

        assert path == all_printings_path
        assert not network.called

    @respx.mock
    async def test_downloads_when_absent(self, tmp_path: Path) -> None:
        respx.get(URL).mock(return_value=httpx.Response(200, content=b"{}"))

        path = await ensure_all_printings(tmp_path / "AllPrintings.json", URL)

        assert path.read_bytes() == b"{}"
