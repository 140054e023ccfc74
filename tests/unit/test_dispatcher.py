import pytest

from guestbook.error.exceptions import DatabaseError, HTTPError, RouteReversalError
from guestbook.web import Dispatcher, DispatchState, RecordingSink

CREATED = DispatchState.CREATED
BUILDING = DispatchState.CONTEXT_BUILDING
RUNNING = DispatchState.HANDLER_RUNNING
SAVING = DispatchState.SESSION_SAVING
ERRORED = DispatchState.ERRORED
FLUSHED = DispatchState.FLUSHED


@pytest.fixture
def dispatcher(services) -> Dispatcher:
    return Dispatcher(services)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


def test_successful_dispatch(dispatcher, sink, make_request):
    def handler(response, request, ctx):
        ctx.session["visits"] = 1
        response.write("ok")

    result = dispatcher.dispatch(handler, make_request(), sink)

    assert result.trace == [CREATED, BUILDING, RUNNING, SAVING, FLUSHED]
    assert result.session_saved
    assert sink.status_code == 200
    assert sink.body == b"ok"
    assert len(sink.cookies()) == 1
    assert sink.start_calls == 1


def test_session_cookie_round_trips(dispatcher, sink, make_request, services, cookie_value):
    def handler(response, request, ctx):
        ctx.flash("saved")

    dispatcher.dispatch(handler, make_request(), sink)
    value = cookie_value(sink.cookies()[0])
    assert services.sessions.decode(value) == {"_flashes": ["saved"]}


def test_partial_output_never_reaches_sink(dispatcher, sink, make_request):
    """Test that a failing handler's partial body is replaced by the error."""
    def handler(response, request, ctx):
        response.write("<html>partial")
        raise RuntimeError("boom")

    result = dispatcher.dispatch(handler, make_request(), sink)

    assert result.trace == [CREATED, BUILDING, RUNNING, ERRORED, SAVING, FLUSHED]
    assert isinstance(result.error, RuntimeError)
    assert sink.status_code == 500
    assert sink.body == b"Internal Server Error"
    assert b"partial" not in sink.body
    assert sink.headers["Content-Type"].startswith("text/plain")
    # The session is still saved after a handler error
    assert len(sink.cookies()) == 1


def test_http_error_keeps_flashes(dispatcher, sink, make_request, services, cookie_value):
    def handler(response, request, ctx):
        ctx.flash("try again")
        raise HTTPError(400, "Bad input")

    result = dispatcher.dispatch(handler, make_request(), sink)

    assert result.status_code == 400
    assert sink.body == b"Bad input"
    value = cookie_value(sink.cookies()[0])
    assert services.sessions.decode(value)["_flashes"] == ["try again"]


def test_failed_render_keeps_flashes_for_next_page(dispatcher, make_request, services, cookie_value):
    """Test that a page which fails to render does not consume pending flashes."""
    first = RecordingSink()
    dispatcher.dispatch(lambda response, request, ctx: ctx.flash("Thanks for signing!"), make_request(), first)
    cookies = {"session": cookie_value(first.cookies()[0])}

    broken = RecordingSink()
    result = dispatcher.dispatch(
        lambda response, request, ctx: ctx.render(response, "index.html"),
        make_request(cookies=cookies),
        broken,
    )
    assert result.errored
    assert broken.status_code == 500
    value = cookie_value(broken.cookies()[0])
    assert services.sessions.decode(value)["_flashes"] == ["Thanks for signing!"]

    shown = RecordingSink()
    dispatcher.dispatch(
        lambda response, request, ctx: ctx.render(response, "index.html", {"entries": []}),
        make_request(cookies={"session": value}),
        shown,
    )
    assert shown.status_code == 200
    assert b"Thanks for signing!" in shown.body
    assert "_flashes" not in services.sessions.decode(cookie_value(shown.cookies()[0]))


def test_session_save_failure_replaces_body(dispatcher, sink, make_request):
    """Test that an unsaveable session discards the handler's output."""
    def handler(response, request, ctx):
        ctx.session["thing"] = object()
        response.write("looks fine")

    result = dispatcher.dispatch(handler, make_request(), sink)

    assert result.trace == [CREATED, BUILDING, RUNNING, SAVING, ERRORED, FLUSHED]
    assert not result.session_saved
    assert sink.status_code == 500
    assert b"looks fine" not in sink.body
    assert sink.cookies() == []


def test_context_failure_writes_directly(dispatcher, sink, make_request, services, monkeypatch):
    calls = []

    def refuse():
        raise DatabaseError("pool exhausted")

    monkeypatch.setattr(services.database, "checkout", refuse)
    result = dispatcher.dispatch(lambda response, request, ctx: calls.append(1), make_request(), sink)

    assert result.trace == [CREATED, BUILDING, ERRORED, FLUSHED]
    assert calls == []
    assert sink.status_code == 500
    assert sink.cookies() == []


def test_context_is_closed_on_every_path(dispatcher, sink, make_request):
    contexts = []

    def handler(response, request, ctx):
        contexts.append(ctx)
        raise RuntimeError("boom")

    dispatcher.dispatch(handler, make_request(), sink)
    assert contexts[0].closed


def test_debug_exposes_error(dispatcher, sink, make_request, services):
    services.config.debug = True

    def handler(response, request, ctx):
        raise ValueError("bad value")

    dispatcher.dispatch(handler, make_request(), sink)
    assert b"ValueError: bad value" in sink.body
    assert b"Traceback (most recent call last)" in sink.body
    assert b"raise ValueError" in sink.body


def test_programmer_error_is_reported(dispatcher, sink, make_request):
    def handler(response, request, ctx):
        ctx.url_for("nowhere")

    result = dispatcher.dispatch(handler, make_request(), sink)
    assert isinstance(result.error, RouteReversalError)
    assert sink.status_code == 500


def test_fatal_programmer_error_is_raised_after_flush(dispatcher, sink, make_request, services):
    """Test that fatal programmer errors still flush the response first."""
    services.config.fatal_programmer_errors = True

    def handler(response, request, ctx):
        ctx.url_for("nowhere")

    with pytest.raises(RouteReversalError):
        dispatcher.dispatch(handler, make_request(), sink)
    assert sink.start_calls == 1
    assert sink.status_code == 500
