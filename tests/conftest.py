import inspect
from types import SimpleNamespace

import pytest

from toolloop.llm.client import ModelResponse
from toolloop.llm.router import Mode, ModelKind
from toolloop.output.jsonl import set_event_callback
from toolloop.tools.arithmetic import ARITHMETIC_CAPABILITIES
from toolloop.tools.categories import CategorySelection, selection_path
from toolloop.tools.registry import CapabilityRegistry


class FakeModel:
    """Scripted stand-in for the model facade (no network).

    Replies come from ``replies`` in order, or from ``responder(messages, kind)``
    when given. A reply may be a string, a ModelResponse, an exception to
    raise, or an awaitable producing one of those.
    """

    def __init__(self, replies=None, responder=None):
        self.replies = list(replies or [])
        self.responder = responder
        self.calls: list[SimpleNamespace] = []

    async def respond(
        self,
        messages,
        kind=ModelKind.REGULAR,
        mode=Mode.CHAT,
        use_reasoning=False,
        tools=None,
    ):
        self.calls.append(
            SimpleNamespace(messages=list(messages), kind=kind, mode=mode, tools=tools)
        )
        if self.responder is not None:
            reply = self.responder(messages, kind)
        else:
            if not self.replies:
                raise AssertionError(f"unexpected model call: {messages[-1]['content'][:80]!r}")
            reply = self.replies.pop(0)
        if inspect.isawaitable(reply):
            reply = await reply
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, ModelResponse):
            return reply
        return ModelResponse(text=reply)


@pytest.fixture
def selection(tmp_path):
    return CategorySelection(selection_path(tmp_path))


@pytest.fixture
def registry(selection):
    return CapabilityRegistry(ARITHMETIC_CAPABILITIES, selection=selection)


@pytest.fixture
def events():
    captured: list[dict] = []
    set_event_callback(captured.append)
    yield captured
    set_event_callback(None)
