"""
Guestbook: a small web application on a session-backed request-context framework.
"""

__version__ = "0.1.0"
