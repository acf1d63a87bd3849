"""
Input Validators - Sanitization and validation utilities.

Validation errors are rejected at the HTTP edge and never reach the
orchestrator:
- Message presence
- Session ID format (UUID)
- Wallet address format
- Markdown upload type and size
- Context names
"""
import json
import re
import uuid
from typing import Any, Dict, Optional, Tuple

from rukh.core.logging_config import get_logger

logger = get_logger(__name__)

WALLET_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
CONTEXT_NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")
MARKDOWN_EXTENSION = ".md"


def sanitize_message(message: str) -> str:
    """
    Sanitize a user message.

    Removes null bytes and strips surrounding whitespace. Inner whitespace
    is kept because markdown formatting depends on it.
    """
    if not message:
        return ""
    return message.replace("\x00", "").strip()


def validate_message(message: Optional[str]) -> Tuple[bool, str, Optional[str]]:
    """
    Full validation and sanitization of a message.

    Returns:
        Tuple of (is_valid, sanitized_message, error_message)
    """
    if not message or not message.strip():
        return False, "", "Message is required"

    sanitized = sanitize_message(message)
    if not sanitized:
        return False, "", "Message cannot be empty after sanitization"

    return True, sanitized, None


def validate_session_id(session_id: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate a session ID is a proper UUID.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not session_id:
        return True, None  # Empty is OK (will be generated)

    try:
        uuid.UUID(session_id)
        return True, None
    except ValueError:
        return False, "Session ID must be a valid UUID"


def validate_wallet_address(address: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate an EVM address (0x followed by 40 hex characters).

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not address:
        return True, None

    if not WALLET_ADDRESS_PATTERN.match(address):
        return False, "Wallet address must be a valid Ethereum address"

    return True, None


def validate_context_name(name: str) -> Tuple[bool, Optional[str]]:
    if not name or not CONTEXT_NAME_PATTERN.match(name):
        return False, "Context name can only contain lowercase letters, numbers, and hyphens"
    return True, None


def validate_markdown_upload(
    filename: Optional[str],
    size: int,
    max_bytes: int
) -> Tuple[bool, Optional[str]]:
    """
    Check that an upload is a markdown file under the size cap.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not filename or not filename.lower().endswith(MARKDOWN_EXTENSION):
        return False, "Only markdown (.md) files are allowed"

    if "/" in filename or "\\" in filename or filename.startswith("."):
        return False, "Invalid file name"

    if size > max_bytes:
        return False, f"File size exceeds the maximum allowed size ({max_bytes // 1024}KB)"

    return True, None


def parse_auth_data(data: Any) -> Optional[Dict[str, Any]]:
    """
    Normalize the optional `data` payload of an ask request.

    Accepts a dict or a JSON object encoded as a string (multipart forms
    can only carry strings).

    Raises:
        ValueError: If a string payload is not a JSON object
    """
    if data is None or data == "":
        return None
    if isinstance(data, dict):
        return data
    if isinstance(data, str):
        parsed = json.loads(data)
        if not isinstance(parsed, dict):
            raise ValueError("data must be a JSON object")
        return parsed
    raise ValueError("data must be a JSON object")
