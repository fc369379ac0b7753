# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
PNG metadata parser

PNG has no standard geolocation chunk. Coordinates and descriptive
metadata are carried in tEXt/iTXt chunks whose keywords are matched
against the shared keyword vocabulary.

Copyright 2025 DNAi inc.
"""

import logging
from typing import Any, Dict, List

from geoimgr.exceptions import MalformedFieldError
from geoimgr.models import MetadataInfo
from geoimgr.png_chunks import (
    CHUNK_ITXT,
    CHUNK_TEXT,
    TEXT_CHUNK_TYPES,
    Category,
    classify,
    decode_text_chunk,
    iter_chunks,
    parse_gps_text,
    parse_itxt,
)

logger = logging.getLogger(__name__)

# Category -> MetadataInfo attribute
CATEGORY_FIELDS = {
    Category.DESCRIPTION: 'description',
    Category.KEYWORDS: 'keywords',
    Category.CREATION_TIME: 'date_time',
    Category.DATE_TIME: 'date_time',
    Category.CAMERA_MAKE: 'camera_make',
    Category.CAMERA_MODEL: 'camera_model',
}


def read_png(buffer: bytes) -> MetadataInfo:
    """
    Read metadata from PNG text chunks.

    The first chunk that yields a valid value for a field wins; later
    chunks for the same field are ignored. Malformed text chunks are
    skipped.

    Args:
        buffer: PNG file data

    Returns:
        MetadataInfo

    Raises:
        CorruptContainerError: If the chunk structure is broken
    """
    metadata = MetadataInfo()

    for chunk in iter_chunks(buffer):
        if chunk.type not in TEXT_CHUNK_TYPES:
            continue
        try:
            keyword, text = decode_text_chunk(chunk)
        except MalformedFieldError as e:
            logger.warning("Skipping malformed %s chunk at offset %d: %s",
                           chunk.type.decode('latin-1'), chunk.offset, e.message)
            continue

        category = classify(keyword)
        if category is None or text is None:
            continue

        if category is Category.GPS:
            if metadata.gps is None:
                parsed = parse_gps_text(text)
                if parsed:
                    metadata.gps = parsed[0]
            continue

        field = CATEGORY_FIELDS.get(category)
        if field and getattr(metadata, field) is None and text:
            setattr(metadata, field, text)

    return metadata


def inspect_png_chunks(buffer: bytes) -> List[Dict[str, Any]]:
    """
    Describe every chunk of a PNG file.

    Args:
        buffer: PNG file data

    Returns:
        List of per-chunk dictionaries: type, length, offset, stored CRC
        as hex, CRC validity and, for text chunks, the decoded keyword and
        text, iTXt header fields, GPS relatedness and any parsed
        coordinates with the format they were found in

    Raises:
        CorruptContainerError: If the chunk structure is broken
    """
    reports = []
    for chunk in iter_chunks(buffer):
        report: Dict[str, Any] = {
            'type': chunk.type.decode('latin-1'),
            'length': len(chunk.data),
            'offset': chunk.offset,
            'crc': f"{chunk.crc:08X}",
            'crc_valid': chunk.crc_valid,
        }

        if chunk.type in TEXT_CHUNK_TYPES:
            try:
                if chunk.type == CHUNK_ITXT:
                    fields = parse_itxt(chunk.data)
                    keyword, text = fields['keyword'], fields['text']
                    report['compression_flag'] = fields['compression_flag']
                    report['compression_method'] = fields['compression_method']
                    report['language_tag'] = fields['language_tag']
                    report['translated_keyword'] = fields['translated_keyword']
                    report['encoding'] = 'utf8'
                else:
                    keyword, text = decode_text_chunk(chunk)
                    report['encoding'] = 'latin1'
                    if chunk.type != CHUNK_TEXT:
                        report['compressed'] = True
            except MalformedFieldError as e:
                report['parse_error'] = e.message
                reports.append(report)
                continue

            category = classify(keyword)
            report['keyword'] = keyword
            report['text'] = text
            report['category'] = category.value if category else None
            report['is_gps_related'] = category is Category.GPS

            if category is Category.GPS:
                parsed = parse_gps_text(text)
                if parsed:
                    report['parsed_gps'] = parsed[0].to_dict()
                    report['gps_format'] = parsed[1]

        reports.append(report)

    return reports
