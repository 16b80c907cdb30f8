"""
Agent Exception Classes

Session-level errors end one connection attempt and are consumed by the
supervisor. Query errors never leave the executor; they travel back to the
hub as result error text.
"""


class AgentError(Exception):
    """Base exception for agent operations"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(AgentError):
    """Raised when required startup configuration is missing"""

    def __init__(self, message: str = "Invalid agent configuration", details: dict = None):
        super().__init__(message, details)


class ProtocolError(AgentError):
    """Raised when a frame cannot be decoded into a protocol message"""

    def __init__(self, message: str = "Invalid message format", details: dict = None):
        super().__init__(message, details)


class SessionError(AgentError):
    """Base class for errors that terminate a session"""


class DialError(SessionError):
    """Raised when the channel to the hub cannot be opened"""

    def __init__(self, message: str = "Dial failed", details: dict = None):
        super().__init__(message, details)


class HandshakeError(SessionError):
    """Raised when the auth response is missing, malformed or never arrives"""

    def __init__(self, message: str = "Handshake failed", details: dict = None):
        super().__init__(message, details)


class AuthenticationError(SessionError):
    """Raised when the hub explicitly rejects the token"""

    def __init__(self, message: str = "Authentication failed", details: dict = None):
        super().__init__(message, details)


class ChannelError(SessionError):
    """Raised when a read or write fails after the handshake"""

    def __init__(self, message: str = "Channel error", details: dict = None):
        super().__init__(message, details)


class QueryError(AgentError):
    """Per-query failure; encoded into the result message, never raised past the executor"""

    def __init__(self, message: str = "Query execution failed", details: dict = None):
        super().__init__(message, details)
