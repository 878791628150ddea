"""Shared fakes for the desktop agent tests."""

from types import SimpleNamespace

import pytest

from desktop_agent.actuators import InputError


class FakeDevice:
    """Records every injected input instead of touching the OS."""

    def __init__(self, fail_on=(), size=(1920, 1080)):
        self.calls = []
        self.fail_on = set(fail_on)
        self.size = size

    def _record(self, name, *args):
        if name in self.fail_on:
            raise InputError(f"{name} denied")
        self.calls.append((name,) + args)

    def key_down(self, key):
        self._record("key_down", key)

    def key_up(self, key):
        self._record("key_up", key)

    def press(self, key):
        self._record("press", key)

    def write(self, text):
        self._record("write", text)

    def paste(self, text):
        self._record("paste", text)

    def move_to(self, x, y):
        self._record("move_to", x, y)

    def click(self, button):
        self._record("click", button)

    def screen_size(self):
        return self.size


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)

    async def wait(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def sleep():
    return SleepRecorder()


class FakeCompletions:
    """Stands in for client.chat.completions, replaying canned replies."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        content = self.replies.pop(0)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_client(*replies):
    completions = FakeCompletions(replies)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions
