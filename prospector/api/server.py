from __future__ import annotations

import logging
import sys

import uvicorn

from prospector.api.main import create_app
from prospector.config import Config


def run() -> None:
    config = Config()
    logging.basicConfig(
        level=config.log_level.value,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )
    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    run()
