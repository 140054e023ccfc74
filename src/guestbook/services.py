"""
Process-wide services, built once at startup and passed by reference.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .auth import register_session_types
from .config.configuration import GuestbookConfiguration, ensure_config
from .handlers import register_routes
from .routing import Router
from .sessions.serializer import SessionSerializer
from .sessions.store import SessionStore
from .storage.database import Database
from .templates.cache import TemplateCache, TemplateSet

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Shared collaborators handed to the dispatcher and every request context."""
    config: GuestbookConfiguration
    database: Database
    sessions: SessionStore
    router: Router
    templates: TemplateSet

    def close(self) -> None:
        self.database.dispose()


def format_timestamp(value: Any, fmt: str = "%Y-%m-%d %H:%M") -> str:
    if value is None:
        return ""
    return value.strftime(fmt)


def template_functions(router: Router) -> Dict[str, Callable]:
    """Functions available to every template."""
    return {
        "reverse": router.reverse,
        "format_timestamp": format_timestamp,
    }


def build_services(
    config: Any = None,
    router: Optional[Router] = None,
    template_cache: Optional[TemplateCache] = None
) -> Services:
    """
    Build the services for a configuration.

    Routes are installed before the template function table is fixed, so
    templates can reverse every endpoint.

    Args:
        config: GuestbookConfiguration or a dictionary of settings
        router: Router to use instead of the guestbook routes
        template_cache: Cache shared with other services

    Returns:
        Services ready to serve requests
    """
    config = ensure_config(config)

    if router is None:
        router = register_routes(Router())

    serializer = register_session_types(SessionSerializer())
    sessions = SessionStore(
        config.secret_key,
        cookie_name=config.session_cookie_name,
        serializer=serializer,
        encryption_key=config.encryption_key,
        max_age=config.session_max_age,
        path=config.session_cookie_path,
        secure=config.session_cookie_secure,
        samesite=config.session_cookie_samesite,
    )

    database = Database(
        config.database_url,
        pool_size=config.pool_size,
        pool_timeout=config.pool_timeout,
        echo=config.database_echo,
    )

    templates = TemplateSet(
        config.template_dir,
        functions=template_functions(router),
        base=config.base_template,
        cache=template_cache,
    )

    logger.info(f"Built services for {config.database_url} with templates from {config.template_dir}")
    return Services(
        config=config,
        database=database,
        sessions=sessions,
        router=router,
        templates=templates,
    )
