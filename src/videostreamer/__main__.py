"""
=============================================================================
DEMO DRIVER
=============================================================================

Streams JPEG files from disk so the server can be tried in a browser.

=============================================================================
USAGE
=============================================================================

    # Stream one image at ~60 fps on http://127.0.0.1:7879/img
    python -m videostreamer in.jpg

    # Cycle through a set of frames at 15 fps, on all interfaces
    python -m videostreamer frames/*.jpg --fps 15 --host 0.0.0.0

    # Different port and endpoint
    python -m videostreamer in.jpg --port 8080 --endpoint /stream

The files are read once and sent as-is; nothing is decoded or re-encoded.

=============================================================================
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from . import __version__
from .config import ServerConfiguration
from .errors import StreamerError
from .server import Server


logger = logging.getLogger("videostreamer")


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for command-line use."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("videostreamer").setLevel(numeric_level)


def load_frames(paths: list[str]) -> list[bytes]:
    """
    Read every frame file into memory.

    Raises:
        OSError: If a file cannot be read.
        ValueError: If a file is empty.
    """
    frames = []
    for path in paths:
        data = Path(path).read_bytes()
        if not data:
            raise ValueError(f"Empty frame file: {path}")
        frames.append(data)
    return frames


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="videostreamer",
        description="Stream JPEG files as an MJPEG-over-HTTP feed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m videostreamer in.jpg                     # http://127.0.0.1:7879/img
  python -m videostreamer frames/*.jpg --fps 15      # cycle through frames
  python -m videostreamer in.jpg --host 0.0.0.0      # listen on all interfaces
        """
    )

    parser.add_argument(
        "frames",
        nargs="*",
        default=["in.jpg"],
        help="JPEG files to stream, cycled in order (default: in.jpg)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Address to bind to (default: 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=7879,
        help="Port to listen on (default: 7879)"
    )

    parser.add_argument(
        "--endpoint", "-e",
        default="/img",
        help="Path viewers must request (default: /img)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # STREAM ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--fps", "-f",
        type=float,
        default=60.0,
        help="Frames sent per second (default: 60)"
    )

    parser.add_argument(
        "--write-timeout",
        type=float,
        default=5.0,
        help="Seconds before a stalled viewer is dropped (default: 5)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"videostreamer {__version__}"
    )

    return parser


def main(argv=None) -> int:
    """CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level)

    if args.fps <= 0:
        print("Error: --fps must be > 0", file=sys.stderr)
        return 2

    try:
        frames = load_frames(args.frames)
        config = ServerConfiguration(
            args.port,
            address=args.host,
            endpoint=args.endpoint,
            write_timeout=args.write_timeout,
        )
        server = Server(config)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    interval = 1.0 / args.fps

    try:
        with server:
            logger.info(f"Streaming {len(frames)} frame(s) at {args.fps:g} fps, Ctrl+C to stop")
            index = 0
            while server.is_running():
                server.send(frames[index])
                index = (index + 1) % len(frames)
                time.sleep(interval)
    except StreamerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")

    return 0


if __name__ == "__main__":
    sys.exit(main())
