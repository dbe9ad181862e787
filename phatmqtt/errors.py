"""
Exception types raised by the image cache, notifier and MQTT transport.
"""

from enum import Enum


class PhatError(Exception):
    """Base class for all phatmqtt errors."""


class ValidationErrorKind(str, Enum):
    UNDECODABLE = "undecodable"
    SIZE_MISMATCH = "size_mismatch"


class ImageValidationError(PhatError):
    """An uploaded image was rejected. The cached image is left untouched."""

    def __init__(self, kind: ValidationErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class NotReadyError(PhatError):
    """No image has been stored yet."""


class PublishError(PhatError):
    """The MQTT transport failed to deliver a message."""


class TransportConnectError(PhatError):
    """The MQTT connection could not be established."""
