"""
NIP Editor - Main Entry Point
Starts the pickit editor API in front of a rule-file backend.

Usage:
    python main.py
    python main.py --backend http://127.0.0.1:8087 --folder C:/bot/config/pickit
    python main.py --debug
"""

import argparse
import logging
import os
import sys

# Ensure src/ is on sys.path so bare imports and uvicorn "server:app" work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import (
    APP_VERSION,
    EDITOR_HOST,
    EDITOR_PORT,
    LOG_FILE,
    PICKIT_BACKEND_URL,
    PICKIT_DEFAULT_FOLDER,
)
from core.editor_config import EditorConfig

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False):
    """Configure logging.

    Console always shows INFO+ only (loads, saves, backend errors).
    File gets DEBUG when --debug is used (facet rebuilds, stored orders).
    """
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(
        "%(asctime)s %(message)s",
        datefmt="%H:%M:%S"
    ))

    file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.addHandler(console)
    root_logger.addHandler(file_handler)


def main():
    parser = argparse.ArgumentParser(
        description="NIP Editor - pickit rule browser and editor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                   # Default backend and port
  python main.py --port 8500                       # Serve the editor API on 8500
  python main.py --folder "C:/bot/config/pickit"   # Open a pickit folder on start
  python main.py --debug                           # Debug logging to editor.log
        """
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=EDITOR_PORT,
        help=f"Editor API port (default: {EDITOR_PORT})"
    )
    parser.add_argument(
        "--backend", "-b",
        default=PICKIT_BACKEND_URL,
        help=f"Rule-file backend URL (default: {PICKIT_BACKEND_URL})"
    )
    parser.add_argument(
        "--folder", "-f",
        default=PICKIT_DEFAULT_FOLDER,
        help="Pickit folder to open when no folder is remembered"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    setup_logging(debug=args.debug)
    logger.info(f"NIP Editor v{APP_VERSION} starting on {EDITOR_HOST}:{args.port}")

    import uvicorn
    import server

    server.configure(EditorConfig(
        backend_url=args.backend,
        default_folder=args.folder,
        host=EDITOR_HOST,
        port=args.port,
    ))

    try:
        uvicorn.run(
            server.app,
            host=EDITOR_HOST,
            port=args.port,
            log_level="debug" if args.debug else "info",
        )
    except KeyboardInterrupt:
        print("\nGoodbye!")
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
