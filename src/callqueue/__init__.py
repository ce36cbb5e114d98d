"""
Call-queue dispatcher service.

Admits pending outbound-call requests under a global concurrency cap and
drives each admitted item through call-record creation, the external
voice-calling provider and lead-stage bookkeeping.
"""

__version__ = "0.1.0"
