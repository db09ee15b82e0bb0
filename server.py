"""
Development server for the Risk API.
Runs the FastAPI app with uvicorn and auto-reload.
"""

import os

import uvicorn

PORT = int(os.environ.get("PORT", "8000"))

if __name__ == "__main__":
    print(f"Serving at http://localhost:{PORT}")
    print(f"Open http://localhost:{PORT}/docs to try the endpoints")
    print("Press Ctrl+C to stop")
    uvicorn.run("riskgame.api.main:app", host="0.0.0.0", port=PORT, reload=True)
