import logging

from flask import Blueprint, request, jsonify

from security.rate_limit import COOLDOWN, DAILY, HOURLY
from services.errors import ValidationError
from services.registry import get_otp_service
from utils.audit import log_event

logger = logging.getLogger(__name__)

otp_bp = Blueprint("otp", __name__)

RATE_LIMIT_MESSAGES = {
    COOLDOWN: "Please wait a minute before requesting another code.",
    HOURLY: "Too many requests. Please try again later.",
    DAILY: "Daily limit reached. Please try again tomorrow.",
}

# Same text for every verification failure so a caller cannot tell an
# unknown email from a wrong code.
INVALID_CODE_MESSAGE = "Invalid or expired code."
INTERNAL_ERROR_MESSAGE = "Unable to process request. Please try again later."


def rate_limited(result):
    resp = jsonify(
        error=RATE_LIMIT_MESSAGES.get(result.reason, RATE_LIMIT_MESSAGES[HOURLY]),
        retry_after_seconds=result.retry_after,
    )
    resp.headers["Retry-After"] = str(result.retry_after)
    return resp, 429


@otp_bp.post("/otp")
def otp():
    data = request.get_json(silent=True) or {}
    action = data.get("action")
    email = data.get("email")
    purpose = data.get("purpose") or "signup"

    if not action:
        return jsonify(error="Missing action"), 400
    if not isinstance(email, str) or not email.strip():
        return jsonify(error="Missing email"), 400
    if action not in ("request", "verify"):
        return jsonify(error="Invalid action"), 400

    service = get_otp_service()
    try:
        if action == "request":
            result = service.request_code(email, purpose)
            if not result.issued:
                log_event("OTP_RATE_LIMIT", email=email.strip().lower(), purpose=purpose,
                          metadata={"reason": result.reason, "retry_after": result.retry_after})
                return rate_limited(result)

            log_event("OTP_ISSUED", email=email.strip().lower(), purpose=purpose,
                      metadata={"record_id": result.record_id})
            return jsonify(ok=True, message="OTP sent"), 200

        outcome = service.verify_code(email, purpose, data.get("code"))
        if not outcome.ok:
            log_event("OTP_VERIFY_FAIL", email=email.strip().lower(), purpose=purpose,
                      metadata={"reason": outcome.result.value, "attempts": outcome.attempts})
            return jsonify(error=INVALID_CODE_MESSAGE), 400

        log_event("OTP_VERIFIED", email=email.strip().lower(), purpose=purpose,
                  metadata={"record_id": outcome.record_id})
        return jsonify(ok=True, message="OTP verified"), 200

    except ValidationError as exc:
        return jsonify(error=str(exc)), 400
    except Exception:
        logger.exception("otp %s failed", action)
        return jsonify(error=INTERNAL_ERROR_MESSAGE), 500
