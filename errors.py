"""Shared error codes and user-facing messages."""

from __future__ import annotations

# Client-side rejections (no network call is made).
UNSUPPORTED = "UNSUPPORTED"
TOO_LARGE = "TOO_LARGE"
LOSSY_FORMAT = "LOSSY_FORMAT"
WRONG_EXTENSION = "WRONG_EXTENSION"

# Failures reported after (or instead of) a transfer.
UNAUTHORIZED = "UNAUTHORIZED"
RATE_LIMITED = "RATE_LIMITED"
SERVER_ERROR = "SERVER_ERROR"
NETWORK_ERROR = "NETWORK_ERROR"
READ_ERROR = "READ_ERROR"
NON_ASCII_KEY = "NON_ASCII_KEY"

ERROR_MESSAGES = {
    UNSUPPORTED: "Unsupported file type.",
    TOO_LARGE: "File too large (max 50 MB).",
    LOSSY_FORMAT: "Lossy formats cannot be compressed losslessly; use PNG, TIFF, BMP, TGA or GIF.",
    WRONG_EXTENSION: "Please select a .fortner file.",
    UNAUTHORIZED: "API key rejected — check your key.",
    RATE_LIMITED: "Rate limit reached — wait a minute and try again.",
    SERVER_ERROR: "Unknown error",
    NETWORK_ERROR: "Could not reach server — is it running?",
    READ_ERROR: "Could not read the selected file.",
    NON_ASCII_KEY: "API keys contain only ASCII characters.",
}

LOSSY_MARKERS = ("lossy", "jpeg artifact")


def is_lossy_message(text: str) -> bool:
    """True when a server error text signals a content-based lossy rejection."""
    low = text.lower()
    return any(marker in low for marker in LOSSY_MARKERS)
