from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from ..core.exceptions import DatabaseError, DomainError

logger = logging.getLogger(__name__)


def error_body(message: str, code: str, details=None) -> dict:
    return {"success": False, "message": message, "error": {"code": code, "details": details}}


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        if e.status_code >= 500:
            logger.error("%s: %s", e.error_code, e.message)
        return jsonify(error_body(e.message, e.error_code, e.details)), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify(error_body(e.description or e.name, e.name.upper().replace(" ", "_"))), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("Unhandled error")
        return jsonify(error_body("Internal server error", DatabaseError.error_code)), 500
