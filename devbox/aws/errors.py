"""Classification of botocore ClientError codes.

Every place that needs to know *why* a control-plane call failed asks this
module instead of inspecting error payloads inline.
"""

from __future__ import annotations

from botocore.exceptions import ClientError

from devbox.constants import INCORRECT_SPOT_REQUEST_STATE

_THROTTLING_CODES = frozenset({
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "RequestThrottled",
})


def error_code(exc: BaseException) -> str:
    if not isinstance(exc, ClientError):
        return ""
    return exc.response.get("Error", {}).get("Code", "")


def error_message(exc: BaseException) -> str:
    if not isinstance(exc, ClientError):
        return str(exc)
    return exc.response.get("Error", {}).get("Message", "") or str(exc)


def is_not_found(exc: BaseException) -> bool:
    code = error_code(exc)
    return code.endswith(".NotFound") or code.endswith(".Malformed")


def is_throttling(exc: BaseException) -> bool:
    return error_code(exc) in _THROTTLING_CODES


def is_consistency_lag(exc: BaseException) -> bool:
    """True when a call failed because a spot request has not caught up yet.

    The structured error code is authoritative. Some EC2-compatible
    endpoints report the condition under a generic code and only mention it
    in the message, so the message is checked as a fallback.
    """
    if not isinstance(exc, ClientError):
        return False
    if error_code(exc) == INCORRECT_SPOT_REQUEST_STATE:
        return True
    return INCORRECT_SPOT_REQUEST_STATE in error_message(exc)
