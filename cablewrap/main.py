"""Entry: start API server with the background sample loop."""
import logging
import uvicorn

from cablewrap.config import API_HOST, API_PORT, LOG_LEVEL

if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s: %(message)s")
    uvicorn.run(
        "cablewrap.api.app:app",
        host=API_HOST,
        port=API_PORT,
        reload=True,
    )
