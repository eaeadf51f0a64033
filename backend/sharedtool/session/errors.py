"""
Host session errors.

A missing session log or a log without a license token is NOT an error:
discovery returns None for those. These exceptions cover a host session
that an action needs but that is not there.
"""


class SessionError(Exception):
    """Base exception for host session failures."""

    pass


class SessionNotConnectedError(SessionError):
    """No host session is connected."""

    pass


class SharedSessionRequiredError(SessionError):
    """A host session is connected, but it is not a shared session."""

    pass
