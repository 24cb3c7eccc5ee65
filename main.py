"""WellMate companion: dev launcher. Starts the API server."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def main():
    parser = argparse.ArgumentParser(description="WellMate companion dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--profiles-dir", type=Path, default=None,
                        help="Character profile presets (default: packaged presets)")
    parser.add_argument("--reload", action="store_true",
                        help="Restart the server when source files change")
    parser.add_argument("--echo", action="store_true",
                        help="Echo prompts back instead of calling a model")
    args = parser.parse_args()

    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # create_app() reads these through load_settings()
    if args.data_dir:
        os.environ["DATA_DIR"] = str(args.data_dir.resolve())
    if args.profiles_dir:
        os.environ["PROFILES_DIR"] = str(args.profiles_dir.resolve())
    if args.echo:
        os.environ["LLM_ECHO"] = "1"

    print(f"Starting backend on http://localhost:{PORT} ...")
    uvicorn.run(
        "wellmate.app:create_app",
        factory=True,
        host=HOST,
        port=int(PORT),
        reload=args.reload,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
