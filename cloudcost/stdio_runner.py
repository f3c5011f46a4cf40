#!/usr/bin/env python3
# cloudcost/stdio_runner.py
import sys, json, logging
from typing import Dict, Any

from .rpc import handle_request, parse_error
from .settings import settings
from .tracing import cloudcost_tracing

logger = logging.getLogger(__name__)


def _write(msg: Dict[str, Any]):
    sys.stdout.write(json.dumps(msg, ensure_ascii=False) + "\n")
    sys.stdout.flush()


def main(stdin=None):
    # stdout carries the protocol, so logs go to stderr
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO), stream=sys.stderr)
    if settings.OTEL_ENABLED:
        cloudcost_tracing.init_tracing()
    stdin = stdin or sys.stdin
    logger.info("CloudCost MCP listening on stdio")

    while True:
        line = stdin.readline()
        if not line:
            break
        line = line.strip()
        if not line:
            continue

        try:
            req = json.loads(line)
        except ValueError:
            _write(parse_error())
            continue

        if isinstance(req, dict) and req.get("method") in ("shutdown", "server/shutdown"):
            _write({"jsonrpc": "2.0", "id": req.get("id"), "result": {"ok": True}})
            break

        try:
            reply = handle_request(req, {"transport": "stdio"})
        except Exception as e:
            logger.exception("request failed")
            reply = {"jsonrpc": "2.0", "id": req.get("id") if isinstance(req, dict) else None,
                     "error": {"code": -32000, "message": f"internal error: {e}"}}
        if reply is not None:
            _write(reply)


if __name__ == "__main__":
    main()
