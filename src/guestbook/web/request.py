"""
The request interface handlers and the dispatcher rely on.
"""
from typing import Mapping, Protocol


class IncomingRequest(Protocol):
    """
    What the framework reads from a request.

    ``werkzeug.wrappers.Request`` satisfies this interface.
    """
    method: str
    path: str

    @property
    def cookies(self) -> Mapping[str, str]:
        ...

    @property
    def form(self) -> Mapping[str, str]:
        ...

    @property
    def args(self) -> Mapping[str, str]:
        ...
