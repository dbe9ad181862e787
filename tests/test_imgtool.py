"""
Tests for the image conversion command
"""

from PIL import Image

from phatmqtt.imgtool import main
from tests.conftest import make_image


def test_convert_writes_paletted_png(tmp_path):
    source = tmp_path / "snapshot.png"
    source.write_bytes(make_image())
    output = tmp_path / "converted.png"

    assert main(["convert", str(source), "-o", str(output)]) == 0
    with Image.open(output) as img:
        assert img.mode == "P"
        assert img.size == (212, 104)


def test_convert_defaults_to_out_png(tmp_path):
    source = tmp_path / "snapshot.png"
    source.write_bytes(make_image())

    assert main(["convert", str(source)]) == 0
    assert (tmp_path / "out.png").exists()


def test_convert_rejects_wrong_size(tmp_path):
    source = tmp_path / "big.png"
    source.write_bytes(make_image((400, 300)))
    assert main(["convert", str(source)]) == 1


def test_convert_missing_file(tmp_path):
    assert main(["convert", str(tmp_path / "missing.png")]) == 1
