"""Friendly, categorized messages for errors shown on presentation surfaces.

Technical details stay in the log; the display only ever receives one of the
paraphrases below.
"""

from __future__ import annotations

from core.errors import (
    CaptureError,
    DirectoryPermissionDenied,
    DirectoryReadFailed,
    NoPairsAvailable,
)

CATEGORY_NETWORK = "network"
CATEGORY_CAMERA = "camera"
CATEGORY_AI_SERVICE = "ai_service"
CATEGORY_TIMEOUT = "timeout"
CATEGORY_GENERIC = "generic"

FRIENDLY_MESSAGES: dict[str, str] = {
    CATEGORY_NETWORK: "The internet hamsters need a snack break! Let's wait a moment!",
    CATEGORY_CAMERA: "The camera blinked at the wrong moment! One more time!",
    CATEGORY_AI_SERVICE: "Our AI artist dropped their digital paintbrush! Back to work!",
    CATEGORY_TIMEOUT: "The AI is taking a thinking break! Let's try again!",
    CATEGORY_GENERIC: "Oops! The AI got camera shy! Let's try that again!",
}

EMPTY_SLIDESHOW_MESSAGE = "No valid photo pairs found. Take some photos with the booth first!"


def categorize_error(error: BaseException) -> str:
    """Return the display category for `error`.

    Typed capture errors carry their own category; anything else is matched
    on keywords of its text, falling back to generic.
    """
    if isinstance(error, CaptureError):
        return error.category
    if isinstance(error, TimeoutError):
        return CATEGORY_TIMEOUT
    if isinstance(error, ConnectionError):
        return CATEGORY_NETWORK

    text = str(error).lower()
    if "network" in text or "internet" in text or "connection" in text:
        return CATEGORY_NETWORK
    if "camera" in text:
        return CATEGORY_CAMERA
    if "api" in text or "openai" in text or "styliz" in text:
        return CATEGORY_AI_SERVICE
    if "timeout" in text or "timed out" in text:
        return CATEGORY_TIMEOUT
    return CATEGORY_GENERIC


def friendly_message(error: BaseException) -> str:
    """Paraphrase `error` into the message shown to guests."""
    return FRIENDLY_MESSAGES[categorize_error(error)]


def slideshow_error_message(error: BaseException) -> str:
    """Operator-facing message for slideshow scan failures."""
    if isinstance(error, NoPairsAvailable):
        return EMPTY_SLIDESHOW_MESSAGE
    if isinstance(error, DirectoryPermissionDenied):
        return f"Cannot access photo folder at {error.path}. Please check permissions."
    if isinstance(error, DirectoryReadFailed):
        return f"Failed to read photo folder: {error.details}"
    return f"An unexpected error occurred: {error}"
