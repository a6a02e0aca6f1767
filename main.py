#!/usr/bin/env python3
"""
Table Planner startup script.
Initializes the database and starts the FastAPI application.
"""

import logging

import uvicorn

from tableplanner.init_db import init_database

logger = logging.getLogger("tableplanner")


def main():
    """Main startup function"""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    logger.info("Initializing database...")
    init_database()

    logger.info("Starting web server on http://localhost:8000 (docs at /docs)")
    try:
        uvicorn.run(
            "tableplanner.main:app",
            host="0.0.0.0",
            port=8000,
            reload=True,
            log_level="info"
        )
    except KeyboardInterrupt:
        logger.info("Server stopped")


if __name__ == "__main__":
    main()
