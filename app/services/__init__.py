"""
Service layer: link creation, redirect resolution, click tracking, stats
and page metadata.

Services take their session, cache, clock and HTTP client as constructor
arguments and raise the exceptions in app.core.exceptions; the API layer
turns those into HTTP responses.
"""
