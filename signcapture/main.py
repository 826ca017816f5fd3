"""
Sign Capture — community sign contribution client
Main entry point with Rich CLI interface.

Pieces (run each in its own terminal):
  • signcapture-relay    — landmark relay server (port 8000)
  • signcapture-camera   — webcam + MediaPipe Holistic producer
  • signcapture          — this contribution CLI
"""

import argparse
import logging

from rich.console import Console
from rich.panel import Panel

from signcapture.config import API_URL, LANDMARK_WS_URL
from signcapture.contribution_mode import ContributionMode

console = Console()

BANNER = """
 ┌─┐┬┌─┐┌┐┌  ┌─┐┌─┐┌─┐┌┬┐┬ ┬┬─┐┌─┐
 └─┐││ ┬│││  │  ├─┤├─┘ │ │ │├┬┘├┤
 └─┘┴└─┘┘└┘  └─┘┴ ┴┴   ┴ └─┘┴└─└─┘
   Record · Align · Average · Score
"""


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s │ %(levelname)-7s │ %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="signcapture", description="Contribute sign recordings.")
    parser.add_argument("--stream-url", default=LANDMARK_WS_URL, help="landmark relay WebSocket URL")
    parser.add_argument("--api-url", default=API_URL, help="contribution backend base URL")
    parser.add_argument("--require-ready", action="store_true",
                        help="refuse to start recording until lighting and hands pass")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose)

    console.print(Panel(BANNER, border_style="bright_blue", expand=False))
    mode = ContributionMode(
        stream_url=args.stream_url,
        api_url=args.api_url,
        require_ready=args.require_ready,
    )
    mode.start()
    console.print("[dim]Session ended.[/dim]")


if __name__ == "__main__":
    main()
