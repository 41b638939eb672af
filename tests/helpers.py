from typing import Any, Dict, Optional
from unittest.mock import MagicMock


def make_response(status: int = 200, payload: Any = None, headers: Optional[Dict[str, str]] = None):
    resp = MagicMock()
    resp.status_code = status
    resp.reason = "OK" if status < 300 else "Error"
    resp.headers = headers or {}
    resp.json.return_value = {} if payload is None else payload
    return resp


def repo_payload(full_name: str, private: bool = False) -> Dict[str, Any]:
    return {
        "full_name": full_name,
        "clone_url": f"https://github.com/{full_name}.git",
        "private": private,
    }
