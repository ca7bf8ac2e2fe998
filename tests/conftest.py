"""Shared fixtures."""

import os
import tempfile
from pathlib import Path

import pytest

from shogun.config import Config
from shogun.errors import CommunicationError


class FakeBridge:
    """Records messages instead of driving tmux."""

    def __init__(self, fail_targets=None):
        self.messages: list[tuple[str, str]] = []
        self.fail_targets = set(fail_targets or [])

    def send_message(self, target, text):
        if target in self.fail_targets:
            raise CommunicationError(f"Failed to reach {target}", target=target, payload=text, attempts=3)
        self.messages.append((target, text))

    def sent_to(self, target):
        return [text for t, text in self.messages if t == target]


@pytest.fixture
def root():
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def config(root):
    return Config(
        root=root,
        players=["player1", "player2", "player3"],
        monitor_interval=0.05,
        progress_interval=0.01,
    )


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def shogun_env(root):
    """Point SHOGUN_* environment variables at a temp root."""
    env = {"SHOGUN_ROOT": str(root), "SHOGUN_PLAYERS": "player1,player2,player3"}
    old_env = {}
    for k, v in env.items():
        old_env[k] = os.environ.get(k)
        os.environ[k] = v

    yield root

    for k, v in old_env.items():
        if v is None:
            os.environ.pop(k, None)
        else:
            os.environ[k] = v


@pytest.fixture
def make_bridge():
    return FakeBridge
