# Overview: Flask API route for the signing authority used by the print agent handshake.

"""
Signing Function

POST /functions/v1/qz-sign
    {"message": "<agent challenge>", "algorithm": "SHA1" | "SHA256"}
    -> 200 {"signature": "<base64>", "algoUsed": "SHA256"}
    -> 400 {"error": ...}  empty message / unsupported algorithm
    -> 401 {"error": ...}  missing api key or operator session
    -> 500 {"error": ...}  signing key not configured or unusable
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_api_key, require_auth
from ..services import signing_service
from ..services.signing_service import SigningConfigError, SigningRequestError


functions_bp = Blueprint("functions", __name__, url_prefix="/functions/v1")


@functions_bp.post("/qz-sign")
@require_api_key
@require_auth
def qz_sign_route():
    data = request.get_json(silent=True) or {}
    message = data.get("message")
    algorithm = data.get("algorithm")

    try:
        if isinstance(message, str) and message:
            current_app.logger.info(
                "Signing message (length=%d, algo=%s, hex=%s...)",
                len(message),
                (algorithm or signing_service.DEFAULT_ALGORITHM).upper(),
                signing_service.debug_prefix(message),
            )
        result = signing_service.sign_message(
            message,
            algorithm,
            private_key_pem=current_app.config.get("QZ_PRIVATE_KEY"),
        )
        return jsonify(result.to_dict())
    except SigningRequestError as e:
        return jsonify({"error": str(e)}), 400
    except SigningConfigError as e:
        current_app.logger.error("Signing authority misconfigured: %s", e)
        return jsonify({"error": str(e)}), 500
