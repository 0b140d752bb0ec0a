import os

import uvicorn

from manuscript_engine.config import CHAPTERS_FILE_ENV

if __name__ == "__main__":
    if not os.environ.get(CHAPTERS_FILE_ENV):
        raise SystemExit(f"Set {CHAPTERS_FILE_ENV} to a chapter catalog (JSON list of chapters)")

    print("Starting Manuscript Engine API Server...")
    print("Docs available at: http://localhost:8000/docs")

    uvicorn.run(
        "manuscript_engine.api.server:app",
        host="0.0.0.0",
        port=int(os.environ.get("MANUSCRIPT_ENGINE_PORT", "8000")),
        reload=True
    )
