"""Tests for settings, structured logging and error payloads."""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

import orjson
import pytest

from asyncstream import (
    AsyncStream,
    ErrorCode,
    InvalidArgumentError,
    StreamError,
    clear_settings_cache,
    configure_logging,
    get_settings,
    log_context,
)
from asyncstream.observability import BoundLogger, ConsoleRenderer, JsonRenderer, LogEntry, NoOpRenderer


@dataclass
class Capture:
    """Renderer keeping entries in memory."""

    entries: list[LogEntry] = field(default_factory=list)

    def render(self, entry: LogEntry) -> None:
        self.entries.append(entry)


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for var in ("ASYNCSTREAM_DEBUG", "ASYNCSTREAM_LOG_LEVEL", "ASYNCSTREAM_LOG_FORMAT"):
        monkeypatch.delenv(var, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


# ─────────────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────────────


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self) -> None:
        settings = get_settings()
        assert settings.debug is False
        assert settings.logging.format == "console"
        assert settings.effective_log_level == "INFO"

    def test_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ASYNCSTREAM_LOG_LEVEL", "warning")
        monkeypatch.setenv("ASYNCSTREAM_LOG_FORMAT", "json")
        settings = get_settings()
        assert settings.logging.level == "WARNING"
        assert settings.logging.format == "json"

    def test_debug_overrides_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ASYNCSTREAM_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("ASYNCSTREAM_DEBUG", "true")
        assert get_settings().effective_log_level == "DEBUG"


# ─────────────────────────────────────────────────────────────────────────────
# Logger
# ─────────────────────────────────────────────────────────────────────────────


class TestLogger:
    """Tests for BoundLogger and renderers."""

    def test_bind(self) -> None:
        capture = Capture()
        log = BoundLogger(context={"logger": "test"}, renderer=capture, level=logging.DEBUG)
        bound = log.bind(stage="pack")
        bound.info("created", size=2)
        assert capture.entries[0].event == "created"
        assert capture.entries[0].context == {"logger": "test", "stage": "pack", "size": 2}
        assert log.context == {"logger": "test"}
        assert capture.entries[0].level == "info"

    def test_level_filter(self) -> None:
        capture = Capture()
        log = BoundLogger(renderer=capture, level=logging.WARNING)
        log.debug("hidden")
        log.info("hidden")
        log.error("shown")
        assert [e.event for e in capture.entries] == ["shown"]

    def test_log_context_scope(self) -> None:
        capture = Capture()
        log = BoundLogger(renderer=capture, level=logging.DEBUG)
        with log_context(job="import"):
            log.info("inside")
        log.info("outside")
        assert capture.entries[0].context == {"job": "import"}
        assert capture.entries[1].context == {}

    def test_console_renderer(self) -> None:
        out = io.StringIO()
        renderer = ConsoleRenderer(output=out, show_timestamp=False)
        renderer.render(LogEntry(0.0, "debug", "stage created", {"stage": "take", "n": 3}))
        assert out.getvalue() == '[debug] stage created n=3 stage="take"\n'

    def test_json_renderer(self) -> None:
        out = io.StringIO()
        JsonRenderer(output=out).render(LogEntry(0.0, "info", "done", {"items": 4, "obj": object()}))
        record = orjson.loads(out.getvalue())
        assert record["event"] == "done"
        assert record["items"] == 4
        assert record["timestamp"].startswith("1970-01-01T00:00:00")
        assert record["obj"].startswith("<object")

    def test_unknown_format(self) -> None:
        with pytest.raises(ValueError, match="Unknown format"):
            configure_logging(format="xml")


class TestStreamLogging:
    """Stream operations emit debug events once configured."""

    @pytest.mark.asyncio
    async def test_stage_and_terminal_events(self) -> None:
        out = io.StringIO()
        configure_logging(format="json", level="DEBUG", output=out)

        assert await AsyncStream.from_iterable([1, 2, 3]).pack(2).count() == 2

        records = [orjson.loads(line) for line in out.getvalue().splitlines()]
        assert {"event": "stage created", "stage": "pack", "size": 2}.items() <= records[0].items()
        assert records[-1]["event"] == "stream consumed"
        assert records[-1]["operation"] == "count"
        assert records[-1]["items"] == 2
        assert all(r["logger"] == "asyncstream.stream" for r in records)

    @pytest.mark.asyncio
    async def test_silent_above_debug(self) -> None:
        out = io.StringIO()
        configure_logging(format="json", level="INFO", output=out)
        await AsyncStream.from_iterable([1]).map(lambda x: x + 1).collect()
        assert out.getvalue() == ""

    @pytest.mark.asyncio
    async def test_debug_env_needs_configure(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("ASYNCSTREAM_DEBUG", "true")
        monkeypatch.setenv("ASYNCSTREAM_LOG_FORMAT", "json")
        clear_settings_cache()

        await AsyncStream.from_iterable([1, 2]).pack(2).collect()
        assert capsys.readouterr().err == ""

        out = io.StringIO()
        configure_logging(output=out)
        await AsyncStream.from_iterable([1, 2]).pack(2).collect()
        events = [orjson.loads(line)["event"] for line in out.getvalue().splitlines()]
        assert events == ["stage created", "stream consumed"]

    @pytest.mark.asyncio
    async def test_defaults_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ASYNCSTREAM_LOG_FORMAT", "none")
        clear_settings_cache()
        assert isinstance(configure_logging(), NoOpRenderer)


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────


class TestErrors:
    """Tests for structured stream errors."""

    def test_validation_error_payload(self) -> None:
        with pytest.raises(InvalidArgumentError) as info:
            AsyncStream.empty().pack(0)
        error = info.value.error
        assert error.operation == "pack"
        assert error.code is ErrorCode.INVALID_ARGUMENT
        assert "got 0" in (error.details or "")
        assert isinstance(info.value, ValueError)

    def test_render(self) -> None:
        error = StreamError(operation="flat", message="bad group", code=ErrorCode.INVALID_SHAPE, details="got int")
        assert str(error) == "flat: bad group (got int)"
        assert error.model_dump()["code"] == "INVALID_SHAPE"
