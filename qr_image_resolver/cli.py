"""CLI entry point for QR Image Resolver."""

import argparse
import json
import logging
import os
import sys

from qr_image_resolver import DEFAULT_SIZE, ENDPOINT_ENV_VAR, __version__


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qr-image-resolver",
        description="Build an embeddable QR code image reference backed by a remote renderer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Print the image URL
  python -m qr_image_resolver "https://example.com/verify/0xabc"

  # Print an <img> element at 256px
  python -m qr_image_resolver "hello world" --size 256 --format html

  # Use a self-hosted renderer (or set {ENDPOINT_ENV_VAR})
  python -m qr_image_resolver "hello" --endpoint https://qr.internal/render

  # Fetch the image and save it locally
  python -m qr_image_resolver "hello" --download qr.png
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    # Required
    parser.add_argument(
        "value",
        help="Text or URL to encode in the QR code",
    )

    # Optional
    parser.add_argument(
        "--size",
        type=int,
        default=DEFAULT_SIZE,
        help=f"Square image size in pixels. Default: {DEFAULT_SIZE}",
    )
    parser.add_argument(
        "--endpoint",
        default=None,
        help=f"Rendering service URL. Default: ${ENDPOINT_ENV_VAR} or api.qrserver.com",
    )
    parser.add_argument(
        "--format",
        default="url",
        choices=["url", "html", "json"],
        help="What to print. Default: url",
    )
    parser.add_argument(
        "--download",
        default=None,
        metavar="PATH",
        help="Fetch the rendered image and save it to PATH",
    )

    # Flags
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite the --download file without prompting",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    from qr_image_resolver.resolver import get_resolver, InvalidArgument
    from qr_image_resolver.display import render_img, to_dict

    try:
        resolver = get_resolver(args.endpoint)
        reference = resolver.resolve(args.value, args.size)
    except InvalidArgument as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"ERROR: invalid endpoint: {e}", file=sys.stderr)
        return 1

    if args.format == "html":
        print(render_img(reference))
    elif args.format == "json":
        print(json.dumps(to_dict(reference), ensure_ascii=False))
    else:
        print(reference.url)

    if args.download:
        # Lazy import keeps requests/PIL off the plain resolve path
        from qr_image_resolver.fetch import download_image, output_format, FetchError

        try:
            output_format(args.download)
        except ValueError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

        if os.path.exists(args.download) and not args.overwrite:
            response = input(f"  Output file '{args.download}' already exists. Overwrite? [y/N] ")
            if response.lower() not in ("y", "yes"):
                print("  Aborted.", file=sys.stderr)
                return 0

        try:
            output_path = download_image(reference, args.download)
        except (FetchError, ValueError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        print(f"Saved: {output_path}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    sys.exit(main())
