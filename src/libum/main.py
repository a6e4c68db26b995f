# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

import uvicorn
from dotenv import load_dotenv

from libum.config import load_config
from libum.utils.logger import logger


def main() -> None:
    """Run the web application."""
    load_dotenv()
    config = load_config()
    logger.info(f"Starting libum on {config.server.host}:{config.server.port}")
    try:
        uvicorn.run("libum.app:app", host=config.server.host, port=config.server.port)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


if __name__ == "__main__":  # pragma: no cover
    main()
