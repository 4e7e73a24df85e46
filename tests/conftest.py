"""Shared fixtures: an in-memory event channel and a client wired to it."""

from __future__ import annotations

import pytest

from chatsync.client import Client

from helpers import FakeEventChannel, Recorder, make_client


@pytest.fixture
def events() -> FakeEventChannel:
    return FakeEventChannel()


@pytest.fixture
def client(events: FakeEventChannel) -> Client:
    return make_client(events=events)


@pytest.fixture
def partial_client(events: FakeEventChannel) -> Client:
    return make_client(events=events, partials=True)


@pytest.fixture
def recorder(client: Client) -> Recorder:
    return Recorder(client)
