"""Entry point for running litreview as a module or installed script.

Usage:
    litreview / python -m litreview         → JSON API (uvicorn)
    litreview <command> ... / python -m litreview <command> ... → CLI
"""

import sys

import uvicorn


def run() -> None:
    """Entry point: no args → web API, else → CLI."""
    if len(sys.argv) == 1:
        uvicorn.run("litreview.gui.app:create_app", factory=True, host="127.0.0.1", port=8000)
    else:
        from litreview.cli import run_cli
        run_cli()


if __name__ == "__main__":
    run()
