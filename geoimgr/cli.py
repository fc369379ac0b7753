# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Command-line interface for GeoImgr

Reads, writes and inspects image geolocation metadata on files. This is
the only part of the package that touches the filesystem.

Copyright 2025 DNAi inc.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from geoimgr import __version__
from geoimgr.coordinates import validate_coordinates
from geoimgr.core import read_metadata_universal, write_metadata_universal
from geoimgr.exceptions import GeoImgrError
from geoimgr.format_detector import FormatDetector
from geoimgr.format_support import FORMAT_SUPPORT, get_format_support, writing_suggestion
from geoimgr.models import GPSCoordinates, MetadataInfo
from geoimgr.png_parser import inspect_png_chunks


def format_output(metadata: dict, format_type: str = "text") -> str:
    """
    Format metadata output.

    Args:
        metadata: Dictionary of metadata
        format_type: Output format ('text' or 'json')

    Returns:
        Formatted output string
    """
    if format_type == "json":
        return json.dumps(metadata, indent=2, ensure_ascii=False)

    lines = []
    gps = metadata.get('gps')
    if gps:
        lines.append(f"gps: {gps['lat']}, {gps['lon']}")
    for key, value in metadata.items():
        if key != 'gps':
            lines.append(f"{key}: {value}")
    return "\n".join(lines)


def _load(path: str, mime_override: Optional[str]):
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"File not found: {file_path}")
    data = file_path.read_bytes()
    mime_type = mime_override or FormatDetector.detect_mime_type(str(file_path), data)
    if not mime_type:
        raise GeoImgrError(f"Could not determine the image type of {file_path}; use --mime")
    return file_path, data, mime_type


def cmd_read(args) -> int:
    _, data, mime_type = _load(args.file, args.mime)
    metadata = read_metadata_universal(data, mime_type)
    if metadata.is_empty():
        if args.json:
            print("{}")
        else:
            print("No metadata found")
        return 0
    print(format_output(metadata.to_dict(), "json" if args.json else "text"))
    return 0


def cmd_write(args) -> int:
    validation = validate_coordinates(args.lat, args.lon)
    if not validation['valid']:
        print(f"Error: {'; '.join(validation['errors'])}", file=sys.stderr)
        return 1

    file_path, data, mime_type = _load(args.file, args.mime)
    support = get_format_support(mime_type)
    if not support.can_write_gps:
        print(f"Error: Writing metadata not supported for {mime_type}. {writing_suggestion(mime_type)}",
              file=sys.stderr)
        return 1

    metadata = MetadataInfo(
        gps=GPSCoordinates(validation['lat'], validation['lon']),
        keywords=args.keywords.strip() if args.keywords else None,
        description=args.description.strip() if args.description else None,
    )
    result = write_metadata_universal(data, metadata, mime_type, verify=args.verify)
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    output_path = Path(args.output) if args.output else file_path.with_name(f"geotagged_{file_path.name}")
    output_path.write_bytes(result.buffer)
    print(f"Wrote {output_path} ({len(data)} -> {len(result.buffer)} bytes)")

    if result.verification is not None:
        print(json.dumps(result.verification, indent=2))
        if result.verification.get('gps_match') is False:
            return 1
    return 0


def cmd_chunks(args) -> int:
    _, data, mime_type = _load(args.file, args.mime)
    if mime_type != 'image/png':
        print(f"Error: Chunk listing is only available for PNG files, not {mime_type}", file=sys.stderr)
        return 1
    print(json.dumps(inspect_png_chunks(data), indent=2, ensure_ascii=False))
    return 0


def cmd_support(args) -> int:
    mime_types = [args.mime_type] if args.mime_type else list(FORMAT_SUPPORT)
    table = {}
    for mime_type in mime_types:
        record = get_format_support(mime_type)._asdict()
        record['writing_suggestion'] = writing_suggestion(mime_type)
        table[mime_type] = record
    print(json.dumps(table, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='geoimgr',
        description='Read and write GPS, keywords and description metadata in JPEG, TIFF, PNG and WebP images',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    parser.add_argument('--mime', help='MIME type of the input (default: detect from name and content)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    read_parser = subparsers.add_parser('read', help='Print the metadata of an image')
    read_parser.add_argument('file', help='Image file')
    read_parser.add_argument('--json', action='store_true', help='Output JSON')
    read_parser.set_defaults(func=cmd_read)

    write_parser = subparsers.add_parser('write', help='Write GPS and descriptive metadata to an image')
    write_parser.add_argument('file', help='Image file')
    write_parser.add_argument('--lat', required=True, help='Latitude in decimal degrees')
    write_parser.add_argument('--lon', required=True, help='Longitude in decimal degrees')
    write_parser.add_argument('--keywords', help='Comma-separated keywords')
    write_parser.add_argument('--description', help='Image description')
    write_parser.add_argument('-o', '--output', help='Output file (default: geotagged_<name> next to the input)')
    write_parser.add_argument('--verify', action='store_true', help='Read the result back and report what was written')
    write_parser.set_defaults(func=cmd_write)

    chunks_parser = subparsers.add_parser('chunks', help='List the chunks of a PNG file as JSON')
    chunks_parser.add_argument('file', help='PNG file')
    chunks_parser.set_defaults(func=cmd_chunks)

    support_parser = subparsers.add_parser('support', help='Show what each format supports')
    support_parser.add_argument('mime_type', nargs='?', help='MIME type to look up')
    support_parser.set_defaults(func=cmd_support)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        return args.func(args)
    except (GeoImgrError, OSError) as e:
        message = e.message if isinstance(e, GeoImgrError) else str(e)
        print(f"Error: {message}", file=sys.stderr)
        return 1
