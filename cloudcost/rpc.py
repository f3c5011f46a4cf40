# JSON-RPC dispatch shared by the HTTP and stdio transports
import json
import logging
from typing import Any, Dict, Optional

from . import __version__
from .errors import CloudCostError, ToolArgumentError, UnknownToolError
from .tools.registry import call_tool, list_tools

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-06-18"
SERVER_INFO = {"name": "cloudcost-mcp", "version": __version__}

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32000


def _error(id_, code, message, data=None):
    err: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return {"jsonrpc": "2.0", "id": id_, "error": err}


def _result(id_, obj):
    return {"jsonrpc": "2.0", "id": id_, "result": obj}


def _tool_result(result: Dict[str, Any], is_error: bool = False) -> Dict[str, Any]:
    return {
        "content": [{"type": "text", "text": json.dumps(result)}],
        "structuredContent": result,
        "isError": is_error
    }


def parse_error():
    return _error(None, PARSE_ERROR, "parse error")


def handle_tool_call(mid, params: Dict[str, Any], ctx: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    name = params.get("name")
    args = params.get("arguments") or {}
    try:
        result = call_tool(name, args, ctx)
    except UnknownToolError as e:
        return _error(mid, INVALID_PARAMS, str(e))
    except ToolArgumentError as e:
        return _error(mid, INVALID_PARAMS, f"Invalid arguments: {e}", e.to_payload())
    except CloudCostError as e:
        return _result(mid, _tool_result(dict(e.to_payload()), is_error=True))
    except Exception as e:
        logger.exception(f"tool {name} failed")
        return _result(mid, {
            "content": [{"type": "text", "text": f"Tool error: {e}"}],
            "isError": True
        })
    return _result(mid, _tool_result(result))


def handle_request(req: Any, ctx: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    """Answer one JSON-RPC request. Returns None for notifications."""
    if not isinstance(req, dict) or req.get("jsonrpc") != "2.0":
        mid = req.get("id") if isinstance(req, dict) else None
        return _error(mid, INVALID_REQUEST, "invalid request")

    mid = req.get("id")
    method = req.get("method")
    params = req.get("params") or {}

    if "id" not in req:
        # notifications/initialized and friends need no answer
        logger.debug(f"notification {method}")
        return None

    if method in ("initialize", "server/initialize"):
        return _result(mid, {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": SERVER_INFO
        })

    if method == "tools/list":
        return _result(mid, {"tools": list_tools(), "nextCursor": None})

    if method == "tools/call":
        return handle_tool_call(mid, params, ctx)

    if method == "ping":
        return _result(mid, {})

    return _error(mid, METHOD_NOT_FOUND, f"method not found: {method}")
