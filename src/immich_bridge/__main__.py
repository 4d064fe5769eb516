"""
Entry point for running immich_bridge as a module.

Usage:
    python -m immich_bridge --user alice configure https://photos.example.com/api KEY
    python -m immich_bridge --user alice albums
    python -m immich_bridge --user alice timeline --page 2 --favorites
    python -m immich_bridge --user alice download ASSET_ID --kind preview -o preview.jpg
    python -m immich_bridge --user alice save ASSET_ID --target Photos --name beach.jpg
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from immich_bridge.bridge import Bridge, BridgeResponse
from immich_bridge.config import Settings
from immich_bridge.credentials import CredentialStore
from immich_bridge.immich.timeline import TimelineFilters

logger = logging.getLogger(__name__)


def load_settings(path: Path) -> Settings:
    """Load settings from YAML, or from defaults and environment if the file is missing."""
    try:
        return Settings.from_yaml(path)
    except FileNotFoundError:
        return Settings()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="immich-bridge",
        description="Browse and retrieve photos from an Immich server",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "--user",
        "-u",
        default=os.environ.get("IMMICH_BRIDGE_USER", ""),
        help="Host user id (default: $IMMICH_BRIDGE_USER)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    configure = sub.add_parser("configure", help="Store Immich URL and API key for the user")
    configure.add_argument("base_url")
    configure.add_argument("api_key", nargs="?", default="")

    sub.add_parser("albums", help="List albums")

    album_assets = sub.add_parser("album-assets", help="List assets in an album")
    album_assets.add_argument("album_id")

    sub.add_parser("tags", help="List tags")

    timeline = sub.add_parser("timeline", help="Show one page of the timeline")
    timeline.add_argument("--page", type=int, default=1)
    timeline.add_argument("--favorites", action="store_true")
    timeline.add_argument("--year", type=int)
    timeline.add_argument("--rating", type=int)

    download = sub.add_parser("download", help="Download a rendition of an asset")
    download.add_argument("asset_id")
    download.add_argument(
        "--kind", choices=["thumbnail", "preview", "original"], default="original"
    )
    download.add_argument("--size", help="Thumbnail size hint")
    download.add_argument("--output", "-o", type=Path, required=True)

    save = sub.add_parser("save", help="Copy an original into the user's storage")
    save.add_argument("asset_id")
    save.add_argument("--target", default="/", help="Folder relative to the user's storage")
    save.add_argument("--name", default="", help="File name (default: image_<id>.jpg)")

    return parser


def run_command(bridge: Bridge, args: argparse.Namespace) -> BridgeResponse:
    user = args.user
    if args.command == "configure":
        return bridge.set_config(user, args.base_url, args.api_key)
    if args.command == "albums":
        return bridge.get_albums(user)
    if args.command == "album-assets":
        return bridge.get_assets(user, args.album_id)
    if args.command == "tags":
        return bridge.get_tags(user)
    if args.command == "timeline":
        filters = TimelineFilters(is_favorite=args.favorites, year=args.year, rating=args.rating)
        return bridge.get_timeline(user, filters, args.page)
    if args.command == "download":
        if args.kind == "thumbnail":
            return bridge.get_thumbnail(user, args.asset_id, size=args.size)
        if args.kind == "preview":
            return bridge.get_preview(user, args.asset_id)
        return bridge.get_original(user, args.asset_id)
    if args.command == "save":
        return bridge.save_to_folder(user, args.asset_id, args.target, args.name)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ValueError as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    store = CredentialStore(settings.credentials_db_path)
    try:
        response = run_command(Bridge(settings, store), args)
    finally:
        store.close()

    if not response.ok:
        print(f"Error ({response.status}): {response.data['error']}", file=sys.stderr)
        return 1

    if response.payload is not None:
        with response.payload as payload, open(args.output, "wb") as f:
            for chunk in payload:
                f.write(chunk)
        logger.info(f"Wrote {payload.content_type} to {args.output}")
        return 0

    print(json.dumps(response.data, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
