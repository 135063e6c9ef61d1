"""
Wastebin: Middleware Package
==============================

Request chain:
    Request → [Request ID] → [Access log] → [GZip] → Route handler

Request ID runs first so the access log line carries the id; the id is also
returned in the X-Request-ID response header.
"""
