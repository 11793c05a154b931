"""Dungeon Chat launcher. Serves the API with uvicorn."""

import argparse
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "13013"))


def main():
    parser = argparse.ArgumentParser(description="Dungeon Chat server")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Room storage directory (default: ./data)")
    parser.add_argument("--host", default=HOST, help=f"Bind address (default: {HOST})")
    parser.add_argument("--port", type=int, default=PORT, help=f"Port (default: {PORT})")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args()

    # The app module reads DATA_DIR when uvicorn imports it
    if args.data_dir:
        os.environ["DATA_DIR"] = str(args.data_dir.resolve())

    print(f"Starting Dungeon Chat on http://localhost:{args.port} ...")
    uvicorn.run("dungeon_chat.app:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
