import logging

from flask import Blueprint, request, jsonify

from routes.otp import INTERNAL_ERROR_MESSAGE, INVALID_CODE_MESSAGE
from security.otp_codes import Purpose
from security.password import validate_password
from services.accounts import AccountExists, SqlAccountStore
from services.errors import ValidationError
from services.registry import get_otp_service
from utils.audit import log_event
from utils.validators import normalize_email

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _verify_or_fail(email: str, purpose: Purpose, code: str):
    """Returns None when the code checks out, else a 400 response."""
    outcome = get_otp_service().verify_code(email, purpose, code)
    if outcome.ok:
        return None
    log_event("OTP_VERIFY_FAIL", email=email, purpose=purpose,
              metadata={"reason": outcome.result.value, "attempts": outcome.attempts})
    return jsonify(error=INVALID_CODE_MESSAGE), 400


@auth_bp.post("/register")
def register():
    """Completes signup: the signup code proves control of the email."""
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email") if isinstance(data.get("email"), str) else "")
    password = data.get("password") or ""
    code = data.get("code")

    if not email or not password or not code:
        return jsonify(error="Missing required fields"), 400

    valid, errors = validate_password(password)
    if not valid:
        return jsonify(error="Password does not meet policy", details=errors), 400

    try:
        failure = _verify_or_fail(email, Purpose.SIGNUP, code)
        if failure:
            return failure

        user = SqlAccountStore().create_account(email, password)
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400
    except AccountExists:
        log_event("REGISTER_FAIL_EMAIL_EXISTS", email=email, purpose=Purpose.SIGNUP)
        return jsonify(error="Email already registered"), 409
    except Exception:
        logger.exception("register failed")
        return jsonify(error=INTERNAL_ERROR_MESSAGE), 500

    log_event("REGISTER_SUCCESS", email=email, purpose=Purpose.SIGNUP, metadata={"user_id": user.id})
    return jsonify(message="Registered successfully"), 201


@auth_bp.post("/reset_password")
def reset_password():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email") if isinstance(data.get("email"), str) else "")
    code = data.get("code")
    new_password = data.get("new_password") or ""

    if not email or not code or not new_password:
        return jsonify(error="Missing required fields"), 400

    valid, errors = validate_password(new_password)
    if not valid:
        return jsonify(error="Password does not meet policy", details=errors), 400

    try:
        failure = _verify_or_fail(email, Purpose.PASSWORD_RESET, code)
        if failure:
            return failure

        updated = SqlAccountStore().set_password(email, new_password)
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400
    except Exception:
        logger.exception("reset_password failed")
        return jsonify(error=INTERNAL_ERROR_MESSAGE), 500

    if not updated:
        return jsonify(error="No account found with this email."), 400

    log_event("PASSWORD_RESET", email=email, purpose=Purpose.PASSWORD_RESET)
    return jsonify(ok=True, message="Password updated successfully"), 200
