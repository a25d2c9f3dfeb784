# app/responses.py
"""
Success envelope shared by the JSON routes:
    {"success": true, "data": ..., "message": ...}
"""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

NO_STORE = {"Cache-Control": "no-store, no-cache, must-revalidate"}


def ok(data: Any = None, message: str = "OK", status_code: int = 200,
       headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    body = {"success": True, "data": data, "message": message}
    return JSONResponse(body, status_code=status_code, headers=headers)


def fail(error: str, status_code: int, details: Any = None,
         headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    body = {"success": False, "error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(body, status_code=status_code, headers=headers)
