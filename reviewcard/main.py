"""reviewcard - render a film review link into a shareable PNG card."""

import argparse
import asyncio
import io
import json
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image

from .config import settings
from .errors import ReviewCardError
from .models import CardStyle, RenderOptions, SizePreset
from .service import ReviewCardService
from .url_normalizer import path_segments
from .utils import get_logger, setup_logging

logger = get_logger(__name__)


def _slugify(text: str, max_len: int = 50) -> str:
    """Convert text to a filesystem-safe slug."""
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9]+", "_", slug)
    slug = slug.strip("_")
    return slug[:max_len].rstrip("_")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="reviewcard - Turn a Letterboxd review link into a social card image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m reviewcard.main https://letterboxd.com/user/film/slug/
  python -m reviewcard.main https://boxd.it/abc123 --preset story --style cinematic
  python -m reviewcard.main URL --font-scale 120 --output card.png
  python -m reviewcard.main URL --metadata-only     # Print extracted metadata as JSON
  python -m reviewcard.main --serve --port 8000     # Run the HTTP API
        """,
    )

    parser.add_argument("url", nargs="?", help="Review URL (letterboxd.com or boxd.it)")
    parser.add_argument(
        "--preset",
        choices=[p.value for p in SizePreset],
        default=SizePreset.SQUARE.value,
        help="Card size preset",
    )
    parser.add_argument(
        "--font-scale",
        type=int,
        default=100,
        help="Font size percentage (50-150)",
    )
    parser.add_argument(
        "--style",
        choices=[s.value for s in CardStyle],
        default=CardStyle.CLASSIC.value,
        help="Card layout style",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Output PNG path (defaults to OUTPUT_DIR/<review>_<preset>.png)",
    )
    parser.add_argument(
        "--metadata-only",
        action="store_true",
        help="Fetch and print review metadata without rendering",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the HTTP API with uvicorn",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind host for --serve")
    parser.add_argument("--port", type=int, default=8000, help="Bind port for --serve")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def default_output_path(url: str, preset: SizePreset) -> Path:
    """Output file named after the review path and preset."""
    slug = _slugify(" ".join(path_segments(url))) or "review_card"
    return settings.output_dir / f"{slug}_{preset.value}.png"


async def _render(args: argparse.Namespace, options: RenderOptions) -> bytes:
    async with ReviewCardService() as service:
        result = await service.render(url=args.url, options=options)
        return result.png


async def _metadata(url: str) -> dict:
    async with ReviewCardService() as service:
        metadata = await service.parse(url)
        return metadata.to_dict()


def run_render(args: argparse.Namespace) -> int:
    """
    Render one card to a PNG file.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success)
    """
    start_time = datetime.now()
    options = RenderOptions.build(
        preset=args.preset,
        font_scale=args.font_scale,
        style=args.style,
        template_version=settings.template_version,
    )
    logger.info(f"Rendering {args.url} ({options.serialize()})")

    png = asyncio.run(_render(args, options))

    output = args.output or default_output_path(args.url, options.preset)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(png)

    with Image.open(io.BytesIO(png)) as image:
        width, height = image.size
    elapsed = (datetime.now() - start_time).total_seconds()
    logger.info(f"Card saved: {output} ({width}x{height}, {len(png)} bytes) in {elapsed:.1f}s")
    return 0


def run_metadata(args: argparse.Namespace) -> int:
    """Print extracted metadata as JSON."""
    data = asyncio.run(_metadata(args.url))
    for key in ("posterUrl", "avatarUrl"):
        value = data.get(key)
        if value and value.startswith("data:"):
            data[key] = f"<embedded {len(value)} chars>"
    print(json.dumps(data, indent=2))
    return 0


def run_server(args: argparse.Namespace) -> int:
    """Serve the HTTP API."""
    import uvicorn

    log_level = "debug" if args.debug else settings.log_level.lower()
    logger.info(f"Serving API on http://{args.host}:{args.port}")
    uvicorn.run("reviewcard.api:app", host=args.host, port=args.port, log_level=log_level)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Setup logging
    log_level = "DEBUG" if args.debug else settings.log_level
    setup_logging(level=log_level, gcp_project_id=settings.gcp_project_id)

    logger.info(f"Arguments: {args}")

    if args.serve:
        return run_server(args)

    if not args.url:
        logger.error("A review URL is required (or pass --serve)")
        return 1

    try:
        if args.metadata_only:
            return run_metadata(args)
        return run_render(args)
    except ReviewCardError as e:
        logger.error(f"{e.code.value}: {e.message}" + (f" ({e.details})" if e.details else ""))
        return 1


if __name__ == "__main__":
    sys.exit(main())
