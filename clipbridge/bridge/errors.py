"""Error taxonomy for the capture bridge.

Every failure that crosses a context boundary is turned into a plain
``{"error": ..., "code": ...}`` mapping. Nothing here is ever raised past
the router or the correlation tracker.
"""

from typing import Any, Dict


class BridgeError(Exception):
    """Base class for recoverable bridge failures."""

    code = "bridge_error"
    default_message = "Bridge error"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class Unreachable(BridgeError):
    code = "unreachable"
    default_message = (
        "Timeout waiting for host plugin response. "
        "Make sure the Web Capture plugin is installed."
    )


class UnknownMessageType(BridgeError):
    code = "unknown_message_type"
    default_message = "Unknown message type"


class InvalidMessage(BridgeError):
    code = "invalid_message"
    default_message = "Invalid message"


class DestinationNotFound(BridgeError):
    code = "destination_not_found"
    default_message = (
        "Destination not found. "
        "Try selecting a specific page instead of Journal."
    )


class NodeCreationFailed(BridgeError):
    code = "node_creation_failed"
    default_message = "Failed to create line item"


class CollaboratorError(BridgeError):
    code = "collaborator_error"
    default_message = "Host collaborator failed"


def is_error(response: Any) -> bool:
    """True when a handler result is an error envelope."""
    return isinstance(response, dict) and "error" in response


def error_message(response: Any, fallback: str = "No response from host plugin") -> str:
    if is_error(response):
        return str(response["error"])
    return fallback
