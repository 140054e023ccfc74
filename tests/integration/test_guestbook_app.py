"""End-to-end tests through the WSGI application."""
import pytest


def _text(response) -> str:
    return response.get_data(as_text=True)


def test_hello(client):
    response = client.get("/hello")
    assert response.status_code == 200
    assert _text(response) == "Hello, world!\n"
    assert response.headers["Content-Type"].startswith("text/plain")


def test_empty_guestbook(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Nobody has signed yet." in _text(response)
    assert client.get_cookie("session") is not None


def test_flash_is_shown_exactly_once(client):
    """Test that a flash from one request shows on the next page only."""
    response = client.post("/sign", data={"name": "Bob", "message": "Lovely site"})
    assert response.status_code == 303
    assert response.headers["Location"] == "/"

    first = _text(client.get("/"))
    assert "Thanks for signing the guestbook!" in first
    assert "Lovely site" in first

    second = _text(client.get("/"))
    assert "Thanks for signing the guestbook!" not in second
    assert "Lovely site" in second


def test_entries_newest_first(client):
    client.post("/sign", data={"name": "A", "message": "older entry"})
    client.post("/sign", data={"name": "B", "message": "newer entry"})
    page = _text(client.get("/"))
    assert page.index("newer entry") < page.index("older entry")


def test_empty_message_is_rejected(client):
    client.post("/sign", data={"name": "A", "message": "   "})
    page = _text(client.get("/"))
    assert "Please write a message before signing." in page
    assert "Nobody has signed yet." in page


def test_login_form_posts_to_reversed_route(client, services):
    page = _text(client.get("/login"))
    assert f'action="{services.router.reverse("login")}"' in page


def test_bad_credentials_rerender_with_escaped_username(client):
    """Test that a failed sign-in is a normal page with the username escaped."""
    response = client.post("/login", data={"username": "<script>alert(1)</script>", "password": "x"})
    page = _text(response)
    assert response.status_code == 200
    assert "Invalid username or password." in page
    assert "<script>alert(1)</script>" not in page
    assert 'value="&lt;script&gt;alert(1)&lt;/script&gt;"' in page


def test_register_login_logout(client):
    response = client.post("/register", data={"username": "carol", "password": "pw"})
    assert response.status_code == 303
    page = _text(client.get("/"))
    assert "Signed in as carol" in page
    assert "Welcome, carol!" in page

    client.post("/sign", data={"message": "signed in entry"})
    page = _text(client.get("/"))
    assert "carol," in page

    client.post("/logout")
    page = _text(client.get("/"))
    assert "Signed in as carol" not in page
    assert "You have been signed out." in page

    client.post("/login", data={"username": "carol", "password": "pw"})
    assert "Signed in as carol" in _text(client.get("/"))


def test_register_duplicate_username(client, alice):
    response = client.post("/register", data={"username": "alice", "password": "pw"})
    assert response.status_code == 200
    assert "That username is already taken." in _text(response)


def test_tampered_cookie_yields_fresh_session(client, alice):
    client.post("/login", data={"username": "alice", "password": "wonderland"})
    value = client.get_cookie("session").value
    signed, tag = value.rsplit(".", 1)
    client.set_cookie("session", f"{signed}.{'B' if tag[0] == 'A' else 'A'}{tag[1:]}")

    response = client.get("/")
    assert response.status_code == 200
    assert "Signed in as alice" not in _text(response)


def test_unknown_path(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert _text(response) == "Not Found"
    # Routing errors still carry the session cookie
    assert "Set-Cookie" in response.headers


@pytest.mark.parametrize("method,path", [("GET", "/sign"), ("DELETE", "/login")])
def test_method_not_allowed(client, method, path):
    assert client.open(path, method=method).status_code == 405
