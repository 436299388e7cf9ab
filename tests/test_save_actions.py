from __future__ import annotations

import io
import logging

import httpx

from adapters.save_actions import SaveActions, torrent_filename
from adapters.sqlite_storage import SQLiteLedger
from core.config import SaveConfig
from core.models import Entry, Info


def _entry(entry_id: int = 10, title: str = "[Grp] Show - 01", magnet: str | None = "magnet:?xt=urn:btih:AAA") -> Entry:
    return Entry(
        id=entry_id,
        title=title,
        link=f"https://tracker.example/?page=download&tid={entry_id}",
        torrent_url=f"https://tracker.example/?page=download&tid={entry_id}",
        size="1GB",
        category="Anime",
        authorized=True,
        magnet_uri=magnet,
        comment=None,
        published_at=None,
        guid=f"id={entry_id}",
        info=Info(name="Show", ep=1, endep=1, captured=frozenset({"name", "ep"})),
    )


def _ledger(tmp_path) -> SQLiteLedger:
    ledger = SQLiteLedger(str(tmp_path / "ledger.db"))
    ledger.init_db()
    return ledger


def test_without_save_actions_entries_are_only_reported(tmp_path, caplog) -> None:
    ledger = _ledger(tmp_path)
    saver = SaveActions(SaveConfig(), ledger)

    with caplog.at_level(logging.INFO, logger="adapters.save_actions"):
        saver.save(_entry())

    assert 'Accepted "[Grp] Show - 01"' in caplog.text
    assert ledger.list_accepted_ids() == set()


def test_urlfile_and_magnet_stdout(tmp_path) -> None:
    ledger = _ledger(tmp_path)
    urlfile = tmp_path / "urls.txt"
    stdout = io.StringIO()
    saver = SaveActions(SaveConfig(urlfile=str(urlfile), magnetfile="-"), ledger, stdout=stdout)

    saver.save(_entry(10))
    saver.save(_entry(11, magnet=None))

    assert urlfile.read_text(encoding="utf-8").splitlines() == [
        "https://tracker.example/?page=download&tid=10",
        "https://tracker.example/?page=download&tid=11",
    ]
    assert stdout.getvalue() == "magnet:?xt=urn:btih:AAA\n"
    assert ledger.list_accepted_ids() == {10, 11}


def test_already_accepted_ids_are_skipped(tmp_path) -> None:
    ledger = _ledger(tmp_path)
    urlfile = tmp_path / "urls.txt"
    saver = SaveActions(SaveConfig(urlfile=str(urlfile)), ledger)

    saver.save(_entry(10))
    saver.save(_entry(10))

    assert len(urlfile.read_text(encoding="utf-8").splitlines()) == 1


def test_downloads_payload_into_directory(tmp_path) -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, content=b"d8:announce0:e")

    target = tmp_path / "torrents"
    target.mkdir()
    ledger = _ledger(tmp_path)
    client = httpx.Client(transport=httpx.MockTransport(handler))
    saver = SaveActions(SaveConfig(directory=str(target)), ledger, client=client)

    saver.save(_entry(10, title="Show/Part 1"))

    assert requested == ["https://tracker.example/?page=download&tid=10"]
    assert (target / "Show_Part 1.torrent").read_bytes() == b"d8:announce0:e"
    assert ledger.is_accepted(10)


def test_failed_download_is_not_recorded(tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    target = tmp_path / "torrents"
    target.mkdir()
    ledger = _ledger(tmp_path)
    client = httpx.Client(transport=httpx.MockTransport(handler))
    saver = SaveActions(SaveConfig(directory=str(target)), ledger, client=client)

    saver.save(_entry(10))

    assert not ledger.is_accepted(10)
    assert not (target / torrent_filename(_entry(10))).exists()


def test_ledger_survives_reopen(tmp_path) -> None:
    ledger = _ledger(tmp_path)
    ledger.mark_accepted(_entry(42))
    ledger.mark_accepted(_entry(42))

    reopened = SQLiteLedger(str(tmp_path / "ledger.db"))
    reopened.init_db()

    assert reopened.list_accepted_ids() == {42}
    assert reopened.is_accepted(42)
    assert not reopened.is_accepted(None)
