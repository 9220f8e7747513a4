"""Run the console with Flask's threaded server.

Upload sessions live in process memory, so the console runs as a single
process with one thread per request.
"""

import logging
import os

from ppe_console import create_app

HOST = os.environ.get("PPE_CONSOLE_HOST", "127.0.0.1")
PORT = int(os.environ.get("PPE_CONSOLE_PORT", "5000"))


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("PPE_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    app.run(host=HOST, port=PORT, threaded=True)


if __name__ == "__main__":
    main()
