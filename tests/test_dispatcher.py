from __future__ import annotations

import asyncio

import pytest

from doplarr.core.dispatcher import Dispatcher
from doplarr.core.interaction import TIMEOUT_MESSAGE, InteractionState
from doplarr.core.models import ContinuationEvent
from doplarr.errors import GENERIC_ERROR_MESSAGE, ConfigurationError
from doplarr.providers.base import MediaKind


@pytest.mark.asyncio
async def test_start_session_runs_interaction(registry, renderer, make_backend, make_item) -> None:
    backend = make_backend([make_item("Heat")])
    dispatcher = Dispatcher(registry, {MediaKind.MOVIE: backend})

    task = dispatcher.start_session(MediaKind.MOVIE, "heat", renderer)
    await renderer.wait_for("show_results")
    session_id = renderer.last("show_results")[0]
    assert session_id in registry

    accepted = await dispatcher.continue_session(
        ContinuationEvent(custom_id=f"result:{session_id}", values=("0",)), renderer
    )
    await renderer.wait_for("show_details")
    assert accepted
    assert await dispatcher.continue_session(ContinuationEvent(custom_id=f"submit:{session_id}"), renderer)

    assert await asyncio.wait_for(task, 2) is InteractionState.COMPLETED
    assert backend.searched == ["heat"]
    await dispatcher.wait_closed()


def test_start_session_for_unconfigured_kind(registry, renderer, make_backend) -> None:
    dispatcher = Dispatcher(registry, {MediaKind.MOVIE: make_backend()})

    assert dispatcher.kinds == [MediaKind.MOVIE]
    with pytest.raises(ConfigurationError, match="series"):
        dispatcher.start_session(MediaKind.SERIES, "The Wire", renderer)
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_unknown_session_gets_timeout_notice(registry, renderer, make_backend) -> None:
    dispatcher = Dispatcher(registry, {MediaKind.MOVIE: make_backend()})
    event = ContinuationEvent(custom_id="result:no-such-session", values=("0",))

    assert await dispatcher.continue_session(event, renderer) is False
    assert renderer.last("show_message") == (TIMEOUT_MESSAGE, event)


@pytest.mark.asyncio
async def test_malformed_custom_id_is_dropped(registry, renderer, make_backend) -> None:
    dispatcher = Dispatcher(registry, {MediaKind.MOVIE: make_backend()})

    assert await dispatcher.continue_session(ContinuationEvent(custom_id="garbage"), renderer) is False
    assert renderer.calls == []


@pytest.mark.asyncio
async def test_second_push_before_consumption_is_rejected(registry, renderer, make_backend) -> None:
    dispatcher = Dispatcher(registry, {MediaKind.MOVIE: make_backend()})
    session_id, _, receiver = registry.create()
    first = ContinuationEvent(custom_id=f"result:{session_id}", values=("0",))
    second = ContinuationEvent(custom_id=f"result:{session_id}", values=("1",))

    assert await dispatcher.continue_session(first, renderer) is True
    assert await dispatcher.continue_session(second, renderer) is False

    assert renderer.messages() == [TIMEOUT_MESSAGE]
    assert renderer.last("show_message")[1] == second
    assert session_id not in registry
    # The event accepted first is still delivered before the channel reports closure.
    assert await receiver.recv() == first


@pytest.mark.asyncio
async def test_shutdown_cancels_running_sessions(registry, renderer, make_backend, make_item) -> None:
    dispatcher = Dispatcher(registry, {MediaKind.MOVIE: make_backend([make_item("Heat")])})
    task = dispatcher.start_session(MediaKind.MOVIE, "heat", renderer)
    await renderer.wait_for("show_results")

    await dispatcher.shutdown()

    assert task.cancelled()
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_double_selection_during_details_ends_session_once(
    registry, renderer, make_renderer, make_backend, make_item, make_detail
) -> None:
    backend = make_backend(
        [make_item("Heat")],
        [make_detail("Monitor", "All", "None"), make_detail("Quality Profile", "HD", "4K")],
    )
    dispatcher = Dispatcher(registry, {MediaKind.MOVIE: backend})
    task = dispatcher.start_session(MediaKind.MOVIE, "heat", renderer)
    await renderer.wait_for("show_results")
    session_id = renderer.last("show_results")[0]
    assert await dispatcher.continue_session(
        ContinuationEvent(custom_id=f"result:{session_id}", values=("0",)), renderer
    )
    await renderer.wait_for("show_details")

    # Two clicks land before the session consumes the first one.
    late = make_renderer()
    first = ContinuationEvent(custom_id=f"detail:{session_id}:Monitor", values=("0",))
    second = ContinuationEvent(custom_id=f"detail:{session_id}:Quality Profile", values=("1",))
    assert await dispatcher.continue_session(first, renderer) is True
    assert await dispatcher.continue_session(second, late) is False

    assert await asyncio.wait_for(task, 2) is InteractionState.FAILED
    assert late.messages() == [TIMEOUT_MESSAGE]
    assert late.last("show_message")[1] == second
    assert renderer.messages() == [GENERIC_ERROR_MESSAGE]
    fields = {field.title: field for field in renderer.last("show_details")[2].fields}
    assert fields["Monitor"].selection.title == "All"
    assert fields["Quality Profile"].pending
    assert renderer.count("show_completion") == 0
    assert backend.requested == []
    assert session_id not in registry
