"""
Call-queue admission control and dispatch.

Kept import-free for the same reason as callqueue.calls.
"""

__all__: list[str] = []
