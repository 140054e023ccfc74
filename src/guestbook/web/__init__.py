"""
Request handling: context, buffered responses and the dispatcher.
"""

from .request import IncomingRequest
from .response import BufferedResponse, ResponseSink, WSGISink, RecordingSink, redirect
from .context import RequestContext
from .dispatcher import Dispatcher, DispatchResult, DispatchState, Handler

__all__ = [
    'IncomingRequest',
    'BufferedResponse',
    'ResponseSink',
    'WSGISink',
    'RecordingSink',
    'redirect',
    'RequestContext',
    'Dispatcher',
    'DispatchResult',
    'DispatchState',
    'Handler',
]
