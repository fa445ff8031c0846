# Overview: JSON envelope shared by every API route.

from __future__ import annotations

from typing import Any

from flask import Response, jsonify


def success_response(data: Any = None, message: str | None = None, status: int = 200):
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return jsonify(body), status


def error_response(error: str, status: int = 400, **extra):
    body: dict[str, Any] = {"success": False, "error": error}
    body.update(extra)
    return jsonify(body), status


def pdf_response(pdf: bytes, filename: str) -> Response:
    return Response(
        pdf,
        mimetype="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
