"""
Tests for PNG chunk parsing, text chunk classification and PNG writes
"""

import json
import struct
import zlib

import pytest

from builders import PNG_SIGNATURE, build_png, png_chunk, text_chunk
from geoimgr.config import CodecConfig
from geoimgr.exceptions import CorruptContainerError, MalformedFieldError
from geoimgr.models import GPSCoordinates, MetadataInfo
from geoimgr.png_chunks import (
    CHUNK_ITXT,
    CHUNK_TEXT,
    Category,
    Chunk,
    classify,
    create_text_chunk,
    decode_text_chunk,
    iter_chunks,
    parse_gps_text,
    parse_itxt,
)
from geoimgr.png_parser import inspect_png_chunks, read_png
from geoimgr.png_writer import PNGWriter, write_png


def _itxt(keyword: str, text: str, compressed: bool = False) -> bytes:
    body = text.encode('utf-8')
    if compressed:
        body = zlib.compress(body)
    data = keyword.encode('utf-8') + b'\x00' + bytes([int(compressed), 0]) + b'en\x00' + b'\x00' + body
    return png_chunk(b'iTXt', data)


def _ztxt(keyword: str, text: str) -> bytes:
    return png_chunk(b'zTXt', keyword.encode('latin-1') + b'\x00\x00' + zlib.compress(text.encode('latin-1')))


def _text_chunks(data: bytes):
    """(keyword, text) of every tEXt/iTXt chunk, in file order."""
    return [
        decode_text_chunk(chunk) for chunk in iter_chunks(data)
        if chunk.type in (CHUNK_TEXT, CHUNK_ITXT)
    ]


@pytest.mark.parametrize("keyword, category", [
    ('GPS_Location', Category.GPS),
    ('Geolocation', Category.GPS),
    ('location', Category.GPS),
    ('Image Description', Category.DESCRIPTION),
    ('Comment', Category.DESCRIPTION),
    ('Title', Category.DESCRIPTION),
    ('Keywords', Category.KEYWORDS),
    ('Subject', Category.KEYWORDS),
    ('Creation Time', Category.CREATION_TIME),
    ('Date', Category.DATE_TIME),
    ('Camera Model', Category.CAMERA_MODEL),
    ('Make', Category.CAMERA_MAKE),
    ('Software', Category.SOFTWARE),
    ('Author', None),
    ('Copyright', None),
])
def test_classify(keyword, category):
    assert classify(keyword) is category


@pytest.mark.parametrize("text, expected, fmt", [
    ('{"lat": 37.7749, "lon": -122.4194, "timestamp": "x"}', (37.7749, -122.4194), 'json'),
    ('37.7749,-122.4194', (37.7749, -122.4194), 'csv'),
    (' 10.5, 20.25 ', (10.5, 20.25), 'csv'),
    ('lat=1.5;lon=2.5', (1.5, 2.5), 'key-value'),
    ('latitude=1.5&longitude=2.5', (1.5, 2.5), 'key-value'),
    ('lat=1.5|lng=2.5', (1.5, 2.5), 'key-value'),
    ('-1.5|-2.5', (-1.5, -2.5), 'pipe'),
])
def test_parse_gps_text_formats(text, expected, fmt):
    coords, found_format = parse_gps_text(text)
    assert (coords.lat, coords.lon) == expected
    assert found_format == fmt


@pytest.mark.parametrize("text", [
    'somewhere nice',
    '95,10',
    '{"lat": 10}',
    'lat=10',
    '1|2|3',
    '',
    None,
])
def test_parse_gps_text_rejects(text):
    assert parse_gps_text(text) is None


def test_create_text_chunk_prefers_text():
    data = create_text_chunk('Description', 'plain')
    chunk = next(iter_chunks(PNG_SIGNATURE + data))
    assert chunk.type == CHUNK_TEXT
    assert chunk.crc_valid
    assert decode_text_chunk(chunk) == ('Description', 'plain')


def test_create_text_chunk_uses_itxt_for_unicode():
    data = create_text_chunk('Description', 'Café 東京')
    chunk = next(iter_chunks(PNG_SIGNATURE + data))
    assert chunk.type == CHUNK_ITXT
    assert chunk.crc_valid
    assert decode_text_chunk(chunk) == ('Description', 'Café 東京')

    fields = parse_itxt(chunk.data)
    assert fields['compression_flag'] == 0
    assert fields['language_tag'] == ''
    assert fields['translated_keyword'] == ''


def test_parse_itxt_fields():
    chunk = next(iter_chunks(PNG_SIGNATURE + _itxt('Title', 'x')))
    fields = parse_itxt(chunk.data)
    assert fields['keyword'] == 'Title'
    assert fields['language_tag'] == 'en'
    assert fields['text'] == 'x'


def test_compressed_text_is_not_inflated():
    itxt = next(iter_chunks(PNG_SIGNATURE + _itxt('Title', 'x', compressed=True)))
    assert decode_text_chunk(itxt) == ('Title', None)
    ztxt = next(iter_chunks(PNG_SIGNATURE + _ztxt('Comment', 'y')))
    assert decode_text_chunk(ztxt) == ('Comment', None)


@pytest.mark.parametrize("chunk", [
    Chunk(b'tEXt', b'no separator', 0, 0),
    Chunk(b'iTXt', b'Title', 0, 0),
    Chunk(b'iTXt', b'Title\x00\x00\x00en', 0, 0),
    Chunk(b'iTXt', b'Title\x00\x00\x00\x00\x00\xff\xfe', 0, 0),
    Chunk(b'IDAT', b'\x00', 0, 0),
])
def test_decode_malformed_text_chunk(chunk):
    with pytest.raises(MalformedFieldError):
        decode_text_chunk(chunk)


def test_iter_chunks_reads_structure():
    chunks = list(iter_chunks(build_png(text_chunk('Author', 'Ann'))))
    assert [c.type for c in chunks] == [b'IHDR', b'tEXt', b'IDAT', b'IEND']
    assert chunks[0].offset == 8
    assert all(c.crc_valid for c in chunks)


def test_iter_chunks_ignores_trailing_bytes():
    chunks = list(iter_chunks(build_png() + b'garbage'))
    assert chunks[-1].type == b'IEND'


def test_bad_signature_is_corrupt():
    with pytest.raises(CorruptContainerError):
        list(iter_chunks(b'\x89PNX\r\n\x1a\n' + build_png()[8:]))


def test_chunk_length_past_end_is_corrupt():
    data = build_png()
    # IHDR declares more data than the file holds
    broken = data[:8] + struct.pack('>I', 0x7FFFFFFF) + data[12:]
    with pytest.raises(CorruptContainerError):
        read_png(broken)


def test_truncated_chunk_header_is_corrupt():
    data = build_png()
    with pytest.raises(CorruptContainerError):
        read_png(data[:-12] + b'\x00\x00\x00')


def test_read_first_value_wins():
    data = build_png(
        text_chunk('Description', 'first'),
        text_chunk('Comment', 'second'),
        text_chunk('GPS_Coordinates', 'not coordinates'),
        text_chunk('Location', 'lat=1;lon=2'),
        text_chunk('Geolocation', '3|4'),
    )
    metadata = read_png(data)
    assert metadata.description == 'first'
    assert metadata.gps == GPSCoordinates(1, 2)


def test_read_camera_and_date_fields():
    data = build_png(
        text_chunk('Camera Model', 'X100V'),
        text_chunk('Make', 'Fujifilm'),
        text_chunk('Date', '2024-05-01'),
        text_chunk('Author', 'Ann'),
    )
    metadata = read_png(data)
    assert metadata.camera_model == 'X100V'
    assert metadata.camera_make == 'Fujifilm'
    assert metadata.date_time == '2024-05-01'
    assert metadata.gps is None


def test_read_skips_malformed_text_chunks():
    data = build_png(
        png_chunk(b'iTXt', b'Description'),
        text_chunk('Keywords', 'a,b'),
    )
    metadata = read_png(data)
    assert metadata.description is None
    assert metadata.keywords == 'a,b'


def test_read_without_text_is_empty():
    assert read_png(build_png()).is_empty()


def test_gps_location_written_after_ihdr():
    result = write_png(build_png(), MetadataInfo(gps=GPSCoordinates(37.7749, -122.4194)))
    chunks = list(iter_chunks(result))
    assert chunks[0].type == b'IHDR'
    assert decode_text_chunk(chunks[1])[0] == 'GPS_Location'

    payload = json.loads(decode_text_chunk(chunks[1])[1])
    assert payload['lat'] == 37.7749
    assert payload['lon'] == -122.4194
    assert payload['timestamp'].endswith('Z')

    assert read_png(result).gps == GPSCoordinates(37.7749, -122.4194)


def test_write_emits_every_gps_format(metadata):
    keywords = dict(_text_chunks(write_png(build_png(), metadata)))
    assert parse_gps_text(keywords['GPS_Location'])[1] == 'json'
    assert keywords['GPS_Coordinates'] == '40.7128,-74.006'
    assert keywords['Location'] == 'lat=40.7128;lon=-74.006'
    assert keywords['Geolocation'] == '40.7128|-74.006'
    assert keywords['Description'] == keywords['Comment'] == keywords['Title'] == 'Liberty Island at dusk'
    assert keywords['Keywords'] == keywords['Subject'] == 'harbor,statue,nyc'
    assert 'Creation Time' in keywords
    assert keywords['Software'].startswith('GeoImgr')


def test_write_chunk_order(metadata):
    written = [keyword for keyword, _ in _text_chunks(write_png(build_png(), metadata))]
    assert written == [
        'GPS_Location', 'GPS_Coordinates', 'Location', 'Geolocation',
        'Description', 'Comment', 'Title',
        'Keywords', 'Subject',
        'Creation Time', 'Software',
    ]


def test_write_crcs_are_valid(metadata):
    result = write_png(build_png(), metadata)
    assert all(chunk.crc_valid for chunk in iter_chunks(result))
    assert all(report['crc_valid'] for report in inspect_png_chunks(result))


def test_repeated_writes_do_not_duplicate(metadata):
    data = build_png()
    for _ in range(3):
        data = write_png(data, metadata)
    written = [keyword for keyword, _ in _text_chunks(data)]
    assert len(written) == len(set(written))


def test_write_replaces_old_values():
    original = build_png(
        text_chunk('GPS_Coordinates', '1,2'),
        text_chunk('Description', 'old'),
        text_chunk('Software', 'OtherTool 1.0'),
    )
    result = write_png(original, MetadataInfo(gps=GPSCoordinates(5, 6)))
    keywords = dict(_text_chunks(result))
    assert keywords['GPS_Coordinates'] == '5.0,6.0'
    assert 'Description' not in keywords
    assert keywords['Software'] != 'OtherTool 1.0'
    assert read_png(result).gps == GPSCoordinates(5, 6)


def test_write_keeps_unrelated_chunks(metadata):
    original = build_png(
        text_chunk('Author', 'Ann'),
        text_chunk('Camera Model', 'X100V'),
        text_chunk('Date', '2024-05-01'),
        _ztxt('Description', 'compressed'),
        png_chunk(b'pHYs', struct.pack('>IIB', 2835, 2835, 1)),
    )
    result = write_png(original, metadata)
    types = [chunk.type for chunk in iter_chunks(result)]

    assert types.count(b'zTXt') == 1
    assert types.count(b'pHYs') == 1
    keywords = dict(_text_chunks(result))
    assert keywords['Author'] == 'Ann'
    assert keywords['Camera Model'] == 'X100V'
    assert keywords['Date'] == '2024-05-01'
    assert types[-2:] == [b'IDAT', b'IEND']


def test_compressed_text_chunks_are_kept(metadata):
    compressed = _itxt('Description', 'old caption', compressed=True)
    result = write_png(build_png(compressed, text_chunk('Description', 'old plain')), metadata)

    assert compressed in result
    descriptions = [text for keyword, text in _text_chunks(result) if keyword == 'Description']
    assert 'old plain' not in descriptions
    assert 'Liberty Island at dusk' in descriptions
    assert None in descriptions


def test_unchanged_chunks_keep_their_bytes(metadata):
    author = text_chunk('Author', 'Ann')
    result = write_png(build_png(author), metadata)
    assert author in result


def test_blank_values_are_not_written():
    result = write_png(build_png(), MetadataInfo(description='   ', keywords=''))
    written = [keyword for keyword, _ in _text_chunks(result)]
    assert written == ['Creation Time', 'Software']


def test_unicode_description_uses_itxt():
    result = write_png(build_png(), MetadataInfo(description='Café'))
    types = {decode_text_chunk(c)[0]: c.type for c in iter_chunks(result) if c.type in (CHUNK_TEXT, CHUNK_ITXT)}
    assert types['Description'] == CHUNK_ITXT
    assert read_png(result).description == 'Café'


def test_software_name_from_config():
    writer = PNGWriter(CodecConfig(software_name='PhotoDesk 2'))
    keywords = dict(_text_chunks(writer.write_png(build_png(), MetadataInfo())))
    assert keywords['Software'] == 'PhotoDesk 2'


def test_missing_ihdr_is_corrupt(metadata):
    data = PNG_SIGNATURE + png_chunk(b'IEND', b'')
    with pytest.raises(CorruptContainerError):
        write_png(data, metadata)


def test_write_does_not_modify_input(metadata):
    original = build_png(text_chunk('Description', 'old'))
    snapshot = bytes(original)
    write_png(original, metadata)
    assert original == snapshot


def test_inspect_reports_text_chunks(metadata):
    data = write_png(build_png(_ztxt('Comment', 'z')), metadata)
    reports = inspect_png_chunks(data)

    assert reports[0]['type'] == 'IHDR'
    assert reports[0]['offset'] == 8
    assert reports[0]['length'] == 13
    assert len(reports[0]['crc']) == 8

    gps = next(r for r in reports if r.get('keyword') == 'Location')
    assert gps['is_gps_related']
    assert gps['category'] == 'gps'
    assert gps['gps_format'] == 'key-value'
    assert gps['parsed_gps'] == {'lat': 40.7128, 'lon': -74.006}
    assert gps['encoding'] == 'latin1'

    ztxt = next(r for r in reports if r['type'] == 'zTXt')
    assert ztxt['compressed']
    assert ztxt['text'] is None


def test_inspect_reports_itxt_fields_and_errors():
    data = build_png(_itxt('Title', 'x'), png_chunk(b'iTXt', b'broken'))
    reports = [r for r in inspect_png_chunks(data) if r['type'] == 'iTXt']
    assert reports[0]['language_tag'] == 'en'
    assert reports[0]['encoding'] == 'utf8'
    assert reports[0]['category'] == 'description'
    assert 'parse_error' in reports[1]


def test_pillow_reads_written_png(pil_bytes, open_image, metadata):
    image = open_image(write_png(pil_bytes('PNG'), metadata))
    assert image.size == (32, 24)
    assert image.text['Description'] == 'Liberty Island at dusk'
    assert json.loads(image.text['GPS_Location'])['lat'] == 40.7128
