"""Serve the API: ``python -m confsys [--host H] [--port P] [--reload]``."""

import argparse
import os

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="ConfSys API server")
    parser.add_argument("--host", default=os.getenv("CONFSYS_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("CONFSYS_PORT", "8000")))
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    uvicorn.run(
        "confsys.api:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        # logging is configured by create_app()
        log_config=None,
    )


if __name__ == "__main__":
    main()
