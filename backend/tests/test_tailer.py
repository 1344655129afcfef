# ruff: noqa: S101
from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from mission_ingest.core.errors import IngestionPersistError
from mission_ingest.models.sessions import AgentSession
from mission_ingest.services.ingestion.log_parser import parse_gateway_line
from mission_ingest.services.ingestion.offset_store import OffsetStore
from mission_ingest.services.ingestion.records import ParsedEvent
from mission_ingest.services.ingestion.session_parser import parse_session_line
from mission_ingest.services.ingestion.sinks import SessionSink
from mission_ingest.services.ingestion.tailer import FileTailer, read_new_lines


async def _create_schema(engine: AsyncEngine) -> None:
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)


async def _session_maker() -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await _create_schema(engine)
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


class _RecordingSink:
    def __init__(self) -> None:
        self.batches: list[list[ParsedEvent]] = []

    async def __call__(self, records: Sequence[ParsedEvent]) -> None:
        self.batches.append(list(records))

    @property
    def titles(self) -> list[str]:
        return [record.title for batch in self.batches for record in batch]


def _gateway_line(message: str, *, second: int = 0) -> str:
    return f"2026-02-10T14:23:{second:02d}.000Z [gateway] {message}\n"


def _append(path: Path, text: str) -> None:
    with path.open("a", encoding="utf-8") as handle:
        handle.write(text)


def test_read_new_lines_returns_none_for_missing_file(tmp_path: Path) -> None:
    assert read_new_lines(str(tmp_path / "absent.log"), 0) is None


def test_read_new_lines_drops_blank_lines_and_decodes_invalid_utf8(tmp_path: Path) -> None:
    target = tmp_path / "gateway.log"
    target.write_bytes(b"first\n\n   \nsecond \xff\r\n")

    result = read_new_lines(str(target), 0)

    assert result is not None
    assert result.lines == ["first", "second \ufffd"]
    assert result.end_offset == target.stat().st_size
    assert result.truncated is False


@pytest.mark.asyncio
async def test_pass_reads_only_appended_lines(tmp_path: Path) -> None:
    target = tmp_path / "gateway.log"
    target.write_text(_gateway_line("one", second=1) + _gateway_line("two", second=2))
    sink = _RecordingSink()
    store = OffsetStore(await _session_maker())
    tailer = FileTailer(path=str(target), label="gateway", parser=parse_gateway_line, sink=sink, offset_store=store)

    first = await tailer.trigger()
    _append(target, _gateway_line("three", second=3))
    second = await tailer.trigger()

    assert first.records == 2
    assert second.records == 1
    assert second.start_offset == first.end_offset
    assert sink.titles == ["[gateway] one", "[gateway] two", "[gateway] three"]
    assert await store.get(str(target)) == target.stat().st_size


@pytest.mark.asyncio
async def test_repeated_pass_without_growth_is_a_noop(tmp_path: Path) -> None:
    target = tmp_path / "gateway.log"
    target.write_text(_gateway_line("one"))
    sink = _RecordingSink()
    store = OffsetStore(await _session_maker())
    tailer = FileTailer(path=str(target), label="gateway", parser=parse_gateway_line, sink=sink, offset_store=store)

    await tailer.trigger()
    again = await tailer.trigger()

    assert again.records == 0
    assert again.persisted is False
    assert len(sink.batches) == 1


@pytest.mark.asyncio
async def test_offsets_survive_a_new_tailer_instance(tmp_path: Path) -> None:
    target = tmp_path / "gateway.log"
    target.write_text(_gateway_line("before restart"))
    sink = _RecordingSink()
    store = OffsetStore(await _session_maker())

    await FileTailer(
        path=str(target), label="gateway", parser=parse_gateway_line, sink=sink, offset_store=store
    ).trigger()
    _append(target, _gateway_line("after restart", second=5))
    await FileTailer(
        path=str(target), label="gateway", parser=parse_gateway_line, sink=sink, offset_store=store
    ).trigger()

    assert sink.titles == ["[gateway] before restart", "[gateway] after restart"]


@pytest.mark.asyncio
async def test_missing_file_is_a_noop(tmp_path: Path) -> None:
    sink = _RecordingSink()
    store = OffsetStore(await _session_maker())
    tailer = FileTailer(
        path=str(tmp_path / "not-yet.log"), label="gateway", parser=parse_gateway_line, sink=sink, offset_store=store
    )

    result = await tailer.trigger()

    assert result.missing is True
    assert sink.batches == []


@pytest.mark.asyncio
async def test_truncated_file_is_reread_from_start(tmp_path: Path) -> None:
    target = tmp_path / "gateway.log"
    target.write_text(_gateway_line("old one") + _gateway_line("old two") + _gateway_line("old three"))
    sink = _RecordingSink()
    store = OffsetStore(await _session_maker())
    tailer = FileTailer(path=str(target), label="gateway", parser=parse_gateway_line, sink=sink, offset_store=store)
    await tailer.trigger()

    target.write_text(_gateway_line("rotated"))
    result = await tailer.trigger()

    assert result.truncated is True
    assert result.start_offset == 0
    assert sink.batches[-1][0].title == "[gateway] rotated"
    assert await store.get(str(target)) == target.stat().st_size


@pytest.mark.asyncio
async def test_truncation_to_empty_resets_offset_before_regrowth(tmp_path: Path) -> None:
    target = tmp_path / "gateway.log"
    target.write_text("".join(_gateway_line(f"old {index}", second=index) for index in range(3)))
    sink = _RecordingSink()
    store = OffsetStore(await _session_maker())
    tailer = FileTailer(path=str(target), label="gateway", parser=parse_gateway_line, sink=sink, offset_store=store)
    await tailer.trigger()

    target.write_text("")
    emptied = await tailer.trigger()
    assert emptied.truncated is True
    assert await store.get(str(target)) == 0

    target.write_text("".join(_gateway_line(f"new {index}", second=index) for index in range(5)))
    regrown = await tailer.trigger()

    assert regrown.truncated is False
    assert regrown.records == 5
    assert sink.titles[-5:] == [f"[gateway] new {index}" for index in range(5)]


@pytest.mark.asyncio
async def test_blank_only_growth_advances_offset_without_records(tmp_path: Path) -> None:
    target = tmp_path / "gateway.log"
    target.write_text("\n\n   \n")
    sink = _RecordingSink()
    store = OffsetStore(await _session_maker())
    tailer = FileTailer(path=str(target), label="gateway", parser=parse_gateway_line, sink=sink, offset_store=store)

    result = await tailer.trigger()

    assert result.records == 0
    assert await store.get(str(target)) == target.stat().st_size


@pytest.mark.asyncio
async def test_unparseable_lines_are_skipped(tmp_path: Path) -> None:
    target = tmp_path / "gateway.log"
    target.write_text("garbage line\n" + _gateway_line("kept"))
    sink = _RecordingSink()
    store = OffsetStore(await _session_maker())
    tailer = FileTailer(path=str(target), label="gateway", parser=parse_gateway_line, sink=sink, offset_store=store)

    result = await tailer.trigger()

    assert result.lines == 2
    assert result.records == 1
    assert sink.titles == ["[gateway] kept"]


@pytest.mark.asyncio
async def test_persist_failure_leaves_offset_untouched(tmp_path: Path) -> None:
    target = tmp_path / "gateway.log"
    target.write_text(_gateway_line("must not be lost"))
    store = OffsetStore(await _session_maker())
    delivered: list[str] = []
    failing = True

    async def _flaky_sink(records: Sequence[ParsedEvent]) -> None:
        if failing:
            raise IngestionPersistError("events", 1, 1)
        delivered.extend(record.title for record in records)

    tailer = FileTailer(
        path=str(target), label="gateway", parser=parse_gateway_line, sink=_flaky_sink, offset_store=store
    )

    failed = await tailer.trigger()
    assert failed.error is not None
    assert failed.persisted is False
    assert await store.get(str(target)) == 0

    failing = False
    recovered = await tailer.trigger()
    assert recovered.persisted is True
    assert delivered == ["[gateway] must not be lost"]


@pytest.mark.asyncio
async def test_busy_triggers_coalesce_into_one_rerun(tmp_path: Path) -> None:
    target = tmp_path / "gateway.log"
    target.write_text(_gateway_line("first"))
    store = OffsetStore(await _session_maker())
    release = asyncio.Event()
    entered = asyncio.Event()
    batches: list[list[str]] = []

    async def _slow_sink(records: Sequence[ParsedEvent]) -> None:
        batches.append([record.title for record in records])
        if len(batches) == 1:
            entered.set()
            await release.wait()

    tailer = FileTailer(
        path=str(target), label="gateway", parser=parse_gateway_line, sink=_slow_sink, offset_store=store
    )

    in_flight = asyncio.create_task(tailer.trigger())
    await entered.wait()
    assert tailer.busy is True

    _append(target, _gateway_line("second", second=1))
    skipped = [await tailer.trigger(), await tailer.trigger()]
    release.set()
    await in_flight

    assert all(result.skipped_busy for result in skipped)
    assert batches == [["[gateway] first"], ["[gateway] second"]]
    assert tailer.busy is False


@pytest.mark.asyncio
async def test_session_reread_after_truncation_does_not_duplicate_rows(tmp_path: Path) -> None:
    session_maker = await _session_maker()
    target = tmp_path / "sessions.jsonl"
    first = json.dumps({"agent_id": "kevin", "started_at": "2026-02-10T10:00:00Z", "message_count": 3})
    second = json.dumps({"agent_id": "axe", "started_at": "2026-02-10T11:00:00Z", "message_count": 8})
    target.write_text(f"{first}\n{second}\n")
    tailer = FileTailer(
        path=str(target),
        label="sessions",
        parser=parse_session_line,
        sink=SessionSink(session_maker),
        offset_store=OffsetStore(session_maker),
    )

    await tailer.trigger()
    target.write_text(f"{first}\n")
    result = await tailer.trigger()

    assert result.truncated is True
    assert result.persisted is True
    async with session_maker() as session:
        rows = await AgentSession.objects.all().all(session)
    assert sorted(row.agent_id for row in rows) == ["axe", "kevin"]
