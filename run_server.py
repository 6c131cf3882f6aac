#!/usr/bin/env python
import uvicorn
import os
from dotenv import load_dotenv

if __name__ == "__main__":
    # Load environment variables before the app reads its settings
    load_dotenv()

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "3027"))
    log_level = os.getenv("LOG_LEVEL", "info").lower()
    reload = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes", "on")

    uvicorn.run(
        "hlsproxy.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
        access_log=True
    )
