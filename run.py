import uvicorn
import os

if __name__ == "__main__":
    log_level = os.getenv("LOG_LEVEL", "info")
    reload = os.getenv("RELOAD", "false").lower() == "true"
    port = int(os.getenv("PORT", "8000"))

    uvicorn.run(
        "pricewatch.main:app",
        host="0.0.0.0",
        port=port,
        reload=reload,
        log_level=log_level,
        access_log=True
    )
