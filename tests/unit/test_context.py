import io

import pytest

from guestbook.auth import UserRef
from guestbook.error.exceptions import ContextCreationFailed, DatabaseError, ProgrammerError
from guestbook.web import RequestContext


def test_anonymous_context(services, make_request):
    with RequestContext.create(make_request(), services) as ctx:
        assert ctx.identity is None
        assert ctx.identity_error is None
        assert not ctx.is_authenticated
        assert ctx.session.new
    assert ctx.closed


def test_identity_is_resolved(services, make_request, alice):
    cookie = services.sessions.encode({"user": UserRef.for_user(alice)})
    with RequestContext.create(make_request(cookies={"session": cookie}), services) as ctx:
        assert ctx.is_authenticated
        assert ctx.identity.username == "alice"


def test_missing_user_leaves_context_usable(services, make_request):
    """Test that a reference to a deleted user yields no identity and no error."""
    cookie = services.sessions.encode({"user": UserRef(id=999, username="ghost")})
    with RequestContext.create(make_request(cookies={"session": cookie}), services) as ctx:
        assert ctx.identity is None
        assert "ghost" in ctx.identity_error
        assert ctx.collection("entries").find().count() == 0


def test_tampered_cookie_gives_fresh_session(services, make_request):
    with RequestContext.create(make_request(cookies={"session": "forged.1.AAAA"}), services) as ctx:
        assert ctx.session.new
        assert ctx.identity is None


def test_close_is_idempotent(services, make_request):
    ctx = RequestContext.create(make_request(), services)
    ctx.close()
    ctx.close()
    assert ctx.closed
    with pytest.raises(ProgrammerError):
        ctx.collection("entries")


def test_database_unavailable(services, make_request, monkeypatch):
    def refuse():
        raise DatabaseError("pool exhausted")

    monkeypatch.setattr(services.database, "checkout", refuse)
    with pytest.raises(ContextCreationFailed):
        RequestContext.create(make_request(), services)


def test_identity_lookup_failure_releases_database(services, make_request, alice, monkeypatch):
    """Test that a failure after checkout returns the database session."""

    class FakeSession:
        closed = False

        def close(self):
            self.closed = True

    db_session = FakeSession()

    def broken_collection(session, name):
        raise DatabaseError("lost connection")

    monkeypatch.setattr(services.database, "checkout", lambda: db_session)
    monkeypatch.setattr(services.database, "collection", broken_collection)
    cookie = services.sessions.encode({"user": UserRef.for_user(alice)})

    with pytest.raises(ContextCreationFailed):
        RequestContext.create(make_request(cookies={"session": cookie}), services)
    assert db_session.closed


def test_login_logout(services, make_request, alice):
    with RequestContext.create(make_request(), services) as ctx:
        ctx.login(alice)
        assert ctx.session["user"] == UserRef(id=alice.id, username="alice")
        assert ctx.identity is alice
        ctx.logout()
        assert "user" not in ctx.session
        assert ctx.identity is None


def test_render_injects_context_and_drains_flashes(services, make_request):
    with RequestContext.create(make_request(), services) as ctx:
        ctx.flash("Saved <b>!</b>")
        writer = io.StringIO()
        ctx.render(writer, "login.html", {"username": "bob"})
        output = writer.getvalue()
        assert "Saved &lt;b&gt;!&lt;/b&gt;" in output
        assert 'action="/login"' in output
        assert ctx.session.drain_flashes() == []


def test_url_for(services, make_request):
    with RequestContext.create(make_request(), services) as ctx:
        assert ctx.url_for("sign") == "/sign"
