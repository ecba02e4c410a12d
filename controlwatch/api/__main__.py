"""Development server for the controlwatch API."""

import uvicorn

if __name__ == "__main__":
    uvicorn.run("controlwatch.api.app:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
