"""Tests for handler invocation."""

import threading

import pytest

from sqs_listener.listener.handler import invoke_handler, is_async_handler


class TestInvokeHandler:
    """Tests for sync/async handler dispatch."""

    @pytest.mark.asyncio
    async def test_sync_handler_runs_in_worker_thread(self):
        seen = {}

        def handler(body):
            seen["body"] = body
            seen["thread"] = threading.get_ident()

        await invoke_handler(handler, "lorem ipsum")

        assert seen["body"] == "lorem ipsum"
        assert seen["thread"] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_async_handler_awaited(self):
        seen = []

        async def handler(body):
            seen.append(body)

        await invoke_handler(handler, "x")
        assert seen == ["x"]

    @pytest.mark.asyncio
    async def test_callable_object_with_async_call(self):
        class Handler:
            def __init__(self):
                self.bodies = []

            async def __call__(self, body):
                self.bodies.append(body)

        handler = Handler()
        assert is_async_handler(handler)
        await invoke_handler(handler, "y")
        assert handler.bodies == ["y"]

    @pytest.mark.asyncio
    async def test_exceptions_propagate(self):
        def handler(body):
            raise ValueError("bad payload")

        with pytest.raises(ValueError, match="bad payload"):
            await invoke_handler(handler, "z")

    def test_is_async_handler(self):
        async def a(body):
            pass

        def s(body):
            pass

        assert is_async_handler(a)
        assert not is_async_handler(s)
