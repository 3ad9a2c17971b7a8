"""Shared tool infrastructure: decorators, helpers, error formatting."""
import functools
import json
import logging

import OSC_Bridge.state as state
from OSC_Bridge.connections.errors import OscTimeoutError, PortInUseError

logger = logging.getLogger("ParanoidAbleton")


class ReadOnlyError(PermissionError):
    """A write tool was called while read-only mode is active."""


def _tool_handler(error_prefix: str):
    """Decorator that wraps async tool functions with standard error handling.

    All plain-string returns are wrapped in tool_success() for consistent JSON
    envelope. Returns that are already JSON (start with '{' or '[') pass through.

    Catches ValueError -> INVALID_INPUT, ReadOnlyError -> READ_ONLY,
    PortInUseError -> PORT_CONFLICT, OscTimeoutError -> TIMEOUT,
    ConnectionError -> CONNECTION_FAILED, Exception -> INTERNAL_ERROR.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                result = await func(*args, **kwargs)
                if isinstance(result, str):
                    stripped = result.strip()
                    if stripped.startswith(("{", "[")):
                        return result  # already structured JSON
                    return tool_success(result)
                return result
            except ValueError as e:
                return tool_error(f"Invalid input: {e}", code="INVALID_INPUT")
            except ReadOnlyError as e:
                return tool_error(str(e), code="READ_ONLY")
            except PortInUseError as e:
                return tool_error(f"{e}. Close other OSC clients or change OSC_RECEIVE_PORT.",
                                  code="PORT_CONFLICT")
            except OscTimeoutError as e:
                return tool_error(f"No response from Ableton: {e}", code="TIMEOUT")
            except ConnectionError as e:
                return tool_error(f"Ableton not reachable: {e}", code="CONNECTION_FAILED")
            except Exception as e:
                logger.error("Error %s: %s", error_prefix, e)
                return tool_error(f"Error {error_prefix}: {e}", code="INTERNAL_ERROR")
        return wrapper
    return decorator


def guard_write(tool_name: str) -> None:
    """Raise ReadOnlyError if read-only mode blocks ``tool_name``."""
    if state.read_only:
        raise ReadOnlyError(
            f'Tool "{tool_name}" blocked. Read-only mode is active. '
            f"Use set_read_only(false) to disable."
        )


def tool_success(message: str, data: dict = None) -> str:
    """Create a standardized success response."""
    result = {"status": "ok", "message": message}
    if data:
        result["data"] = data
    return json.dumps(result)


def tool_error(message: str, code: str = None) -> str:
    """Create a standardized error response."""
    result = {"status": "error", "message": message}
    if code:
        result["code"] = code
    return json.dumps(result)
