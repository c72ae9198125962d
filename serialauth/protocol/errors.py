# MIT License © 2025 Motohiro Suzuki
from __future__ import annotations


class SerialAuthError(Exception):
    pass


class TransportError(SerialAuthError):
    pass


class TransportUnavailable(TransportError):
    """Write attempted while no writable channel is open."""
    pass


class TransportReadError(TransportError):
    pass


class HandshakeError(SerialAuthError):
    pass


class MalformedChallenge(HandshakeError):
    """Challenge text between the markers is not valid even-length hex."""
    pass


class HandshakeTimeout(HandshakeError):
    pass


class InvalidKeyLength(SerialAuthError, ValueError):
    pass


class KeySourceError(SerialAuthError):
    pass


class ConfigError(SerialAuthError, ValueError):
    pass
