"""Shared error codes, user-facing messages and the exception taxonomy."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"
CAPTURE_UNSUPPORTED = "CAPTURE_UNSUPPORTED"
NETWORK_ERROR = "NETWORK_ERROR"
CONNECTION_TIMEOUT = "CONNECTION_TIMEOUT"
AUTH_FAILED = "AUTH_FAILED"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
HOLD_TOO_SHORT = "HOLD_TOO_SHORT"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone permission is required.",
    DEVICE_NOT_FOUND: "No microphone found.",
    CAPTURE_UNSUPPORTED: "Audio capture is not supported here.",
    NETWORK_ERROR: "Network failed, please retry.",
    CONNECTION_TIMEOUT: "Connection to the speech service timed out.",
    AUTH_FAILED: "API key is missing or invalid.",
    ASR_PROTOCOL_ERROR: "Speech service reported an error.",
    HOLD_TOO_SHORT: "Hold to record",
}


class TranscriptionError(Exception):
    code = ASR_PROTOCOL_ERROR

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES[self.code])
        self.message = message or ERROR_MESSAGES[self.code]


class DeviceError(TranscriptionError):
    code = CAPTURE_UNSUPPORTED


class PermissionDeniedError(DeviceError):
    code = PERMISSION_DENIED


class DeviceNotFoundError(DeviceError):
    code = DEVICE_NOT_FOUND


class CaptureUnsupportedError(DeviceError):
    code = CAPTURE_UNSUPPORTED


class StreamConnectionError(TranscriptionError):
    code = NETWORK_ERROR


class ConnectionTimeout(StreamConnectionError):
    code = CONNECTION_TIMEOUT


class CredentialMissing(StreamConnectionError):
    code = AUTH_FAILED


class CredentialRejected(StreamConnectionError):
    code = AUTH_FAILED


class ProtocolError(TranscriptionError):
    code = ASR_PROTOCOL_ERROR


class UserGestureError(TranscriptionError):
    """Press released before the debounce elapsed; never escalated."""

    code = HOLD_TOO_SHORT
