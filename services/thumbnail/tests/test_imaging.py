import io

import pytest
from PIL import Image

from app import imaging
from app.exceptions import DecodeError
from conftest import make_image, make_multi_picture_jpeg


@pytest.mark.parametrize(
    "size, expected",
    [
        ((1280, 960), (640, 480)),   # same aspect, exact fit
        ((2000, 500), (640, 160)),   # wide: width bound
        ((500, 2000), (120, 480)),   # tall: height bound
        ((320, 200), (320, 200)),    # smaller than the box: untouched
    ],
)
def test_resize_fits_box_and_keeps_aspect(size: tuple[int, int], expected: tuple[int, int]) -> None:
    source = imaging.decode(make_image(size))
    thumb = imaging.resize(source, 640, 480)
    assert thumb.size == expected
    assert thumb.width <= 640 and thumb.height <= 480
    assert abs(thumb.width / thumb.height - size[0] / size[1]) < 0.05


def test_resize_does_not_modify_source() -> None:
    source = imaging.decode(make_image((1000, 1000)))
    imaging.resize(source, 100, 100)
    assert source.size == (1000, 1000)


def test_encoded_thumbnail_decodes_to_resized_dimensions() -> None:
    source = imaging.decode(make_image((1600, 900)))
    thumb = imaging.resize(source, 640, 480)
    decoded = imaging.decode(imaging.encode(thumb, "JPEG"))
    assert decoded.size == thumb.size
    assert decoded.format == "JPEG"


@pytest.mark.parametrize("fmt, mode", [("JPEG", "RGB"), ("PNG", "RGBA"), ("GIF", "P"), ("BMP", "RGB")])
def test_resize_bytes_keeps_format(fmt: str, mode: str) -> None:
    out = imaging.resize_bytes(make_image((900, 900), fmt, mode), fmt, 640, 480)
    with Image.open(io.BytesIO(out)) as result:
        assert result.format == fmt
        assert result.size == (480, 480)


def test_resize_bytes_rejects_format_mismatch() -> None:
    with pytest.raises(DecodeError):
        imaging.resize_bytes(make_image((100, 100), "PNG"), "JPEG", 640, 480)


def test_encode_jpeg_flattens_alpha() -> None:
    rgba = Image.new("RGBA", (50, 40), (10, 20, 30, 100))
    decoded = imaging.decode(imaging.encode(rgba, "JPEG"))
    assert decoded.mode == "RGB"
    assert decoded.size == (50, 40)


def test_decode_garbage_raises() -> None:
    with pytest.raises(DecodeError):
        imaging.decode(b"definitely not an image")


def test_decode_truncated_raises() -> None:
    data = make_image((400, 300), "PNG")
    with pytest.raises(DecodeError):
        imaging.decode(data[: len(data) // 2])


def test_decode_unsupported_format_raises() -> None:
    buf = io.BytesIO()
    Image.new("RGB", (10, 10)).save(buf, format="TIFF")
    with pytest.raises(DecodeError):
        imaging.decode(buf.getvalue())


def test_content_type() -> None:
    assert imaging.content_type("JPEG") == "image/jpeg"
    assert imaging.content_type("PNG") == "image/png"


def test_multi_picture_jpeg_is_read_as_jpeg() -> None:
    data = make_multi_picture_jpeg((1600, 1200))
    assert data[:3] == b"\xff\xd8\xff"
    with Image.open(io.BytesIO(data)) as raw:
        assert raw.format == "MPO"

    source = imaging.decode(data)
    assert source.format == "JPEG"
    assert source.size == (1600, 1200)


def test_multi_picture_jpeg_resizes_to_plain_jpeg() -> None:
    out = imaging.resize_bytes(make_multi_picture_jpeg((1600, 1200)), "JPEG", 640, 480)
    with Image.open(io.BytesIO(out)) as result:
        assert result.format == "JPEG"
        assert result.size == (640, 480)
