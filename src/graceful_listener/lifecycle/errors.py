"""
Exceptions raised inside the lifecycle subsystem.

None of these escape LifecycleCoordinator.run(); they travel as the cause of
an abnormal Outcome or close a single connection.
"""


class ServeFault(RuntimeError):
    """The serve loop stopped on its own without raising an exception."""


class RequestReadTimeout(TimeoutError):
    """The client did not deliver the request body within the read timeout."""


class ResponseWriteTimeout(TimeoutError):
    """The client did not accept response data within the write timeout."""
