from flask import current_app, jsonify

from ..errors import LedgerError


def error_response(exc: LedgerError):
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500
