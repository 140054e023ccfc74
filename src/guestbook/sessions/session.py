"""
Per-request session state.
"""
from typing import Any, Dict, Iterator, List, MutableMapping, Optional

FLASH_KEY = "_flashes"


class Session(MutableMapping):
    """
    Dictionary-like session state decoded from a cookie.

    ``new`` is true when no valid cookie was presented, ``modified`` tracks
    writes made through the mapping interface and ``saved`` is set once the
    store has written the session into a response.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None, new: bool = True):
        self._data: Dict[str, Any] = dict(data or {})
        self.new = new
        self.modified = False
        self.saved = False
        self.invalidated = False

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.modified = True

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self.modified = True

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def add_flash(self, message: Any, key: str = FLASH_KEY) -> None:
        """Queue a message to be shown on the next rendered page."""
        flashes = list(self._data.get(key, []))
        flashes.append(message)
        self[key] = flashes

    def drain_flashes(self, key: str = FLASH_KEY) -> List[Any]:
        """
        Return the queued flash messages and remove them from the session.

        Messages are consumed once: a second call returns an empty list until
        new messages are added.
        """
        if key not in self._data:
            return []
        return list(self.pop(key))

    def invalidate(self) -> None:
        """Drop all data and expire the cookie when the session is saved."""
        self._data.clear()
        self.invalidated = True
        self.modified = True

    def __repr__(self) -> str:
        flags = [name for name in ("new", "modified", "saved", "invalidated") if getattr(self, name)]
        return f"<Session {self._data!r} {' '.join(flags)}>"
