"""
Process-wide template cache and the page loader built on it.
"""
import logging
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .fragments import fragments_from_files
from .registry import CompiledTemplate, TemplateRegistry

logger = logging.getLogger(__name__)


class TemplateCache:
    """
    Name -> compiled template cache shared by all requests.

    One lock guards the map. Compiles are single-flight per key: the first
    caller for a missing key compiles while later callers for the same key
    wait for its result. Entries are never evicted.
    """

    def __init__(self):
        """Initialize an empty cache."""
        self._lock = threading.Lock()
        self._templates: Dict[str, CompiledTemplate] = {}
        self._key_locks: Dict[str, threading.Lock] = {}

    def get(self, key: str) -> Optional[CompiledTemplate]:
        """
        Get a cached template by key.

        Args:
            key: Cache key

        Returns:
            Cached template or None if not compiled yet
        """
        with self._lock:
            return self._templates.get(key)

    def get_or_compile(self, key: str, factory: Callable[[], CompiledTemplate]) -> CompiledTemplate:
        """
        Return the template cached under ``key``, compiling it on first use.

        Args:
            key: Cache key, usually the page file name
            factory: Builds the template; only called on a cache miss

        Returns:
            Cached template
        """
        with self._lock:
            template = self._templates.get(key)
            if template is not None:
                return template
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            with self._lock:
                template = self._templates.get(key)
            if template is not None:
                return template

            try:
                logger.debug(f"Compiling template '{key}'")
                template = factory()
                with self._lock:
                    self._templates[key] = template
            finally:
                with self._lock:
                    if self._key_locks.get(key) is key_lock:
                        del self._key_locks[key]
            logger.info(f"Cached template '{key}'")
            return template

    def clear(self) -> None:
        """Drop every cached template."""
        with self._lock:
            self._templates.clear()
        logger.debug("Cleared template cache")

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._templates)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._templates

    def __len__(self) -> int:
        with self._lock:
            return len(self._templates)


class TemplateSet:
    """
    Compiles pages against a shared base template.

    Each page gets its own registry holding the base fragment and the page
    fragment, so pages can fill the same slots without colliding.
    """

    def __init__(
        self,
        template_dir: Union[str, Path],
        functions: Optional[Mapping[str, Callable]] = None,
        base: str = "_base.html",
        cache: Optional[TemplateCache] = None
    ):
        """
        Initialize the template set.

        Args:
            template_dir: Directory holding the base and page fragments
            functions: Function table given to every page registry
            base: File name of the base fragment, also the entry name
            cache: Cache to store compiled pages in
        """
        self.template_dir = Path(template_dir)
        self.base = base
        self.cache = cache if cache is not None else TemplateCache()
        # Read-only from here on; requests never write to it
        self.functions = MappingProxyType(dict(functions or {}))

    def get(self, page: str) -> CompiledTemplate:
        """Return the compiled template for ``page``."""
        return self.cache.get_or_compile(page, lambda: self._compile(page))

    def _compile(self, page: str) -> CompiledTemplate:
        registry = TemplateRegistry(self.functions)
        fragments = fragments_from_files(self.template_dir, self.base, page)
        return registry.compile(self.base, fragments)

    def render(self, writer: Any, page: str, data: Optional[Mapping[str, Any]] = None) -> None:
        """Render ``page`` into ``writer``."""
        self.get(page).execute(writer, data)

    def pages(self) -> List[str]:
        """Page fragments found in the template directory."""
        if not self.template_dir.is_dir():
            return []
        return sorted(
            path.name for path in self.template_dir.glob("*.html")
            if not path.name.startswith("_")
        )

    def check(self, pages: Optional[List[str]] = None) -> List[str]:
        """
        Compile pages eagerly so setup errors surface at startup.

        Args:
            pages: Pages to compile, all pages when omitted

        Returns:
            Names of the compiled pages
        """
        pages = self.pages() if pages is None else pages
        for page in pages:
            self.get(page)
        logger.info(f"Compiled {len(pages)} page templates from {self.template_dir}")
        return pages
