"""Tests for per-server connections: transport selection, network isolation,
owner-task lifecycle, secret redaction and log file setup."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Any, Tuple
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from mcp import StdioServerParameters

from agent_runtime.bridge.connection import (
    ServerConnection,
    SseConnection,
    StdioConnection,
    StreamableHttpConnection,
    _apply_network_env,
    create_connection,
)
from agent_runtime.config.schema import (
    SandboxConfig,
    SseServerDefinition,
    StreamableHttpServerDefinition,
)
from agent_runtime.display import logging_config
from agent_runtime.display.logging_config import SecretRedactionFilter, setup_logging
from agent_runtime.errors import BackendServerError, ConfigurationError


class TestCreateConnection:
    def test_picks_transport_variant(self, make_def) -> None:
        assert isinstance(create_connection(make_def("a")), StdioConnection)
        sse = SseServerDefinition(name="s", transport="sse", url="http://localhost:1/sse")
        assert isinstance(create_connection(sse), SseConnection)
        http = StreamableHttpServerDefinition(
            name="h", transport="streamable-http", url="https://example.com/mcp"
        )
        assert isinstance(create_connection(http), StreamableHttpConnection)

    def test_unknown_transport(self) -> None:
        definition = MagicMock(transport="carrier-pigeon")
        definition.name = "odd"
        with pytest.raises(ConfigurationError, match="carrier-pigeon"):
            create_connection(definition)

    def test_new_connection_is_closed(self, make_def) -> None:
        conn = create_connection(make_def("a"))
        assert not conn.is_open
        assert conn.name == "a"


class TestApplyNetworkEnv:
    def test_network_denied_blackholes_proxies(self) -> None:
        original = {"FOO": "bar"}
        env = _apply_network_env("svc", SandboxConfig(allow_network=False), original)
        assert env["HTTP_PROXY"] == "http://0.0.0.0:0"
        assert env["HTTPS_PROXY"] == "http://0.0.0.0:0"
        assert env["NO_PROXY"] == ""
        assert env["FOO"] == "bar"
        assert original == {"FOO": "bar"}

    def test_network_denied_without_env(self) -> None:
        env = _apply_network_env("svc", SandboxConfig(), None)
        assert env["HTTP_PROXY"] == "http://0.0.0.0:0"

    def test_network_allowed_passes_through(self) -> None:
        original = {"FOO": "bar"}
        env = _apply_network_env("svc", SandboxConfig(allow_network=True), original)
        assert env is original

    def test_stdio_params_receive_isolated_env(self, make_def) -> None:
        conn = StdioConnection(make_def("svc", env={"TOKEN": "abcd1234"}))
        captured = {}

        def _fake_stdio_client(params: StdioServerParameters):
            captured["params"] = params
            cm = MagicMock()
            cm.__aenter__ = AsyncMock(return_value=("r", "w"))
            cm.__aexit__ = AsyncMock(return_value=False)
            return cm

        async def _run():
            async with AsyncExitStack() as stack:
                return await conn._open_streams(stack)

        with patch("agent_runtime.bridge.connection.stdio_client", _fake_stdio_client):
            streams = asyncio.run(_run())

        assert streams == ("r", "w")
        params = captured["params"]
        assert params.command == "echo"
        assert params.env["HTTP_PROXY"] == "http://0.0.0.0:0"
        assert params.env["TOKEN"] == "abcd1234"


class _StubConnection(ServerConnection):
    transport = "stub"

    async def _open_streams(self, stack: AsyncExitStack) -> Tuple[Any, Any]:
        return MagicMock(), MagicMock()


def _session_cls(session: MagicMock) -> MagicMock:
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=session)
    cm.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=cm)


class TestOwnerTaskLifecycle:
    def test_connect_list_call_close(self, make_def, make_text_result) -> None:
        session = MagicMock()
        session.initialize = AsyncMock()
        session.list_tools = AsyncMock(return_value=MagicMock(tools=["t1", "t2"]))
        session.call_tool = AsyncMock(return_value=make_text_result("ok"))
        conn = _StubConnection(make_def("stub"))

        async def _run():
            await conn.connect(init_timeout=1)
            opened = conn.is_open
            tools = await conn.list_tools()
            result = await conn.call_tool("t1", {"a": 1})
            await conn.close()
            return opened, tools, result

        with patch("agent_runtime.bridge.connection.ClientSession", _session_cls(session)):
            opened, tools, result = asyncio.run(_run())

        assert opened
        assert tools == ["t1", "t2"]
        session.call_tool.assert_awaited_once_with("t1", {"a": 1})
        assert result.content[0].text == "ok"
        assert not conn.is_open

    def test_close_stops_owner_task_without_cancelling(self, make_def) -> None:
        session = MagicMock()
        session.initialize = AsyncMock()
        session_cls = _session_cls(session)
        conn = _StubConnection(make_def("stub"))

        async def _run():
            await conn.connect(init_timeout=1)
            await conn.close()

        with patch("agent_runtime.bridge.connection.ClientSession", session_cls):
            asyncio.run(_run())

        session_cls.return_value.__aexit__.assert_awaited_once_with(None, None, None)
        assert not conn.is_open

    def test_handshake_failure_propagates(self, make_def) -> None:
        session = MagicMock()
        session.initialize = AsyncMock(side_effect=RuntimeError("bad handshake"))
        conn = _StubConnection(make_def("stub"))

        with patch("agent_runtime.bridge.connection.ClientSession", _session_cls(session)):
            with pytest.raises(RuntimeError, match="bad handshake"):
                asyncio.run(conn.connect(init_timeout=1))
        assert not conn.is_open

    def test_handshake_timeout(self, make_def) -> None:
        async def _hang():
            await asyncio.sleep(10)

        session = MagicMock()
        session.initialize = _hang
        conn = _StubConnection(make_def("stub"))

        with patch("agent_runtime.bridge.connection.ClientSession", _session_cls(session)):
            with pytest.raises(asyncio.TimeoutError):
                asyncio.run(conn.connect(init_timeout=0.05))
        assert not conn.is_open

    def test_calls_on_closed_connection_raise(self, make_def) -> None:
        conn = _StubConnection(make_def("stub"))
        with pytest.raises(BackendServerError, match="stub"):
            asyncio.run(conn.list_tools())

    def test_close_without_connect_is_noop(self, make_def) -> None:
        conn = _StubConnection(make_def("stub"))
        asyncio.run(conn.close())
        assert not conn.is_open


class TestSecretRedactionFilter:
    def _record(self, msg: str, *args: Any) -> logging.LogRecord:
        return logging.LogRecord("t", logging.INFO, __file__, 1, msg, args, None)

    def test_registered_values_are_scrubbed(self) -> None:
        f = SecretRedactionFilter()
        f.register_values({"JIRA_API_TOKEN": "s3cr3t-token", "EMPTY": ""})
        record = self._record("token=%s", "s3cr3t-token")
        assert f.filter(record)
        assert record.getMessage() == "token=***REDACTED***"

    def test_short_values_ignored(self) -> None:
        f = SecretRedactionFilter()
        f.register("abc")
        record = self._record("abc")
        f.filter(record)
        assert record.getMessage() == "abc"

    def test_nothing_registered(self) -> None:
        f = SecretRedactionFilter()
        f.register_values(None)
        record = self._record("plain %s", "text")
        f.filter(record)
        assert record.getMessage() == "plain text"


@pytest.fixture
def restore_logging():
    names = ("agent_runtime", "mcp", "httpx")
    saved = {
        name: (lg.handlers[:], lg.level, lg.propagate)
        for name, lg in ((n, logging.getLogger(n)) for n in names)
    }
    root = logging.getLogger()
    saved["root"] = (root.handlers[:], root.level, root.propagate)
    yield
    for name, (handlers, level, propagate) in saved.items():
        lg = root if name == "root" else logging.getLogger(name)
        for handler in lg.handlers:
            if handler not in handlers:
                handler.close()
        lg.handlers = handlers
        lg.setLevel(level)
        lg.propagate = propagate


class TestSetupLogging:
    def test_configures_package_and_sdk_loggers_only(self) -> None:
        assert set(logging_config.BASE_LOG_CFG["loggers"]) == {"agent_runtime", "mcp", "httpx"}
        assert logging_config.BASE_LOG_CFG["loggers"]["httpx"]["level"] == "WARNING"

    def test_writes_redacted_records_to_timestamped_file(
        self, tmp_path, monkeypatch, restore_logging
    ) -> None:
        monkeypatch.setattr(logging_config, "LOG_DIR", str(tmp_path))
        logging_config.secret_redaction_filter.register("tok-9f8e7d")

        log_fpath, level = setup_logging("debug", quiet=True)
        logging.getLogger("agent_runtime.bridge.catalog").debug("header tok-9f8e7d sent")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert level == "DEBUG"
        assert log_fpath.startswith(str(tmp_path))
        assert log_fpath.endswith("_DEBUG.log")
        assert logging.getLogger("agent_runtime").level == logging.DEBUG
        with open(log_fpath, encoding="utf-8") as fh:
            content = fh.read()
        assert "header ***REDACTED*** sent" in content

    def test_invalid_level_falls_back_to_info(
        self, tmp_path, monkeypatch, restore_logging, capsys
    ) -> None:
        monkeypatch.setattr(logging_config, "LOG_DIR", str(tmp_path))
        _, level = setup_logging("chatty")
        assert level == "INFO"
        assert logging.getLogger().level == logging.WARNING
        assert "invalid log level 'chatty'" in capsys.readouterr().out
