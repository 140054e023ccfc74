"""
Guestbook request handlers.
"""
import logging

from .auth import authenticate, create_user
from .error.exceptions import AuthenticationError, UserExists
from .routing import Router
from .storage.models import Entry
from .web.response import redirect

logger = logging.getLogger(__name__)

ENTRIES_PER_PAGE = 20
MAX_NAME_LENGTH = 64
MAX_MESSAGE_LENGTH = 2000


def hello(response, request, ctx):
    response.headers["Content-Type"] = "text/plain; charset=utf-8"
    response.write("Hello, world!\n")


def index(response, request, ctx):
    """Latest entries, newest first, with the signing form."""
    entries = ctx.collection("entries").find().sort("-timestamp", "-id").limit(ENTRIES_PER_PAGE).all()
    ctx.render(response, "index.html", {"entries": entries})


def sign(response, request, ctx):
    message = request.form.get("message", "").strip()
    if ctx.identity is not None:
        name = ctx.identity.username
    else:
        name = request.form.get("name", "").strip() or "Anonymous"

    if not message:
        ctx.flash("Please write a message before signing.")
    elif len(message) > MAX_MESSAGE_LENGTH or len(name) > MAX_NAME_LENGTH:
        ctx.flash("That entry is too long.")
    else:
        author_id = ctx.identity.id if ctx.identity is not None else None
        ctx.collection("entries").insert(Entry(author_id=author_id, name=name, message=message))
        ctx.flash("Thanks for signing the guestbook!")
    redirect(response, ctx.url_for("index"))


def login(response, request, ctx):
    if request.method != "POST":
        ctx.render(response, "login.html", {"username": ""})
        return

    username = request.form.get("username", "")
    user = authenticate(ctx.collection("users"), username, request.form.get("password", ""))
    if user is None:
        # Wrong credentials are a normal outcome: tell the user and show the form again
        ctx.flash("Invalid username or password.")
        ctx.render(response, "login.html", {"username": username})
        return

    ctx.login(user)
    ctx.flash(f"Welcome back, {user.username}!")
    redirect(response, ctx.url_for("index"))


def register(response, request, ctx):
    if request.method != "POST":
        ctx.render(response, "register.html", {"username": ""})
        return

    username = request.form.get("username", "")
    try:
        user = create_user(ctx.collection("users"), username, request.form.get("password", ""))
    except UserExists:
        ctx.flash("That username is already taken.")
        ctx.render(response, "register.html", {"username": username})
        return
    except AuthenticationError as e:
        ctx.flash(e.message)
        ctx.render(response, "register.html", {"username": username})
        return

    ctx.login(user)
    ctx.flash(f"Welcome, {user.username}!")
    redirect(response, ctx.url_for("index"))


def logout(response, request, ctx):
    ctx.logout()
    ctx.flash("You have been signed out.")
    redirect(response, ctx.url_for("index"))


def register_routes(router: Router) -> Router:
    """Install the guestbook routes on ``router``."""
    router.add("/hello", "hello", hello)
    router.add("/", "index", index)
    router.add("/sign", "sign", sign, methods=["POST"])
    router.add("/login", "login", login, methods=["GET", "POST"])
    router.add("/register", "register", register, methods=["GET", "POST"])
    router.add("/logout", "logout", logout, methods=["GET", "POST"])
    return router
