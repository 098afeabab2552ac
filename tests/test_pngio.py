import numpy as np
import pytest
from PIL import Image

from arenakit.pngio import Origin, load_png, save_png


def _pixels(width, height):
    values = np.arange(width * height * 4, dtype=np.uint32) % 256
    return values.astype(np.uint8).reshape(height, width, 4)


@pytest.mark.parametrize("origin", [Origin.LOWER_LEFT, Origin.UPPER_LEFT])
def test_round_trip(tmp_path, origin):
    path = tmp_path / "img.png"
    data = _pixels(3, 2)
    save_png(path, (3, 2), data, origin)
    size, loaded = load_png(path, origin)
    assert size == (3, 2)
    assert np.array_equal(loaded, data)


def test_origins_are_row_flips(tmp_path):
    path = tmp_path / "img.png"
    data = _pixels(4, 3)
    save_png(path, (4, 3), data, Origin.LOWER_LEFT)
    _, upper = load_png(path, Origin.UPPER_LEFT)
    assert np.array_equal(upper, data[::-1])


def test_flat_pixel_list_accepted(tmp_path):
    path = tmp_path / "flat.png"
    data = _pixels(2, 2)
    save_png(path, (2, 2), data.reshape(-1, 4).tolist(), Origin.UPPER_LEFT)
    _, loaded = load_png(path, Origin.UPPER_LEFT)
    assert np.array_equal(loaded, data)


def test_rgb_image_gets_opaque_alpha(tmp_path):
    path = tmp_path / "rgb.png"
    Image.new("RGB", (2, 2), (10, 20, 30)).save(path)
    size, loaded = load_png(path, Origin.UPPER_LEFT)
    assert size == (2, 2)
    assert np.all(loaded[..., 3] == 255)
    assert np.all(loaded[..., :3] == [10, 20, 30])


def test_grey_image_expanded(tmp_path):
    path = tmp_path / "grey.png"
    Image.new("L", (3, 1), 77).save(path)
    _, loaded = load_png(path, Origin.LOWER_LEFT)
    assert loaded.shape == (1, 3, 4)
    assert np.all(loaded[..., :3] == 77)


def test_wrong_size_rejected(tmp_path):
    with pytest.raises(ValueError):
        save_png(tmp_path / "bad.png", (3, 3), _pixels(2, 2), Origin.UPPER_LEFT)


def test_non_png_rejected(tmp_path):
    path = tmp_path / "junk.png"
    path.write_bytes(b"this is not an image")
    with pytest.raises(ValueError, match="Failed to read PNG"):
        load_png(path, Origin.UPPER_LEFT)


def test_other_format_rejected(tmp_path):
    path = tmp_path / "img.bmp"
    Image.new("RGB", (1, 1)).save(path, format="BMP")
    with pytest.raises(ValueError):
        load_png(path, Origin.UPPER_LEFT)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_png(tmp_path / "absent.png", Origin.UPPER_LEFT)