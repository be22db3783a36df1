# run.py
import logging
import os
import sys

import uvicorn

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from savemanager.core.config import PORT, HOST, MINECRAFT_SERVER_PATH

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    print(f"===========================================================")
    print(f" SAVEMANAGER STARTING...")
    print(f" Server directory: {MINECRAFT_SERVER_PATH}")
    print(f" API: http://{HOST}:{PORT}/api/savemanager/status")
    print(f"===========================================================")

    # "savemanager:create_app" refers to the create_app factory in savemanager/__init__.py
    uvicorn.run(
        "savemanager:create_app",
        host=HOST,
        port=PORT,
        factory=True,
    )
