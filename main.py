# Railway/Nixpacks entry point
# Starts the CloudCost MCP server over HTTP, or over stdio when MCP_MODE=stdio
import subprocess
import sys
import os

if __name__ == "__main__":
    if os.environ.get("MCP_MODE", "http") == "stdio":
        subprocess.run([sys.executable, "-m", "cloudcost.stdio_runner"])
    else:
        subprocess.run([sys.executable, "-m", "uvicorn", "cloudcost.main:app", "--host", "0.0.0.0", "--port", os.environ.get("PORT", "3000")])
