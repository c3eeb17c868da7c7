from __future__ import annotations

import io
import zipfile

import pytest

import shotguide.services.packager as packager
from shotguide.errors import PackagingError
from shotguide.services.packager import download_all, download_one, shot_filename
from shotguide.services.storage import bytes_to_data_url
from shotguide.types import SceneData, Shot


def _scene(rendered) -> SceneData:
    shots = []
    for i, done in enumerate(rendered):
        url = bytes_to_data_url(f"jpeg-{i + 1}".encode(), mime="image/jpeg") if done else None
        shots.append(Shot(shot_number=i + 1, shot_type=f"Shot Type {i + 1}", prompt="p", image_data_url=url))
    return SceneData(
        scene_id="japandi-tub-01",
        master_scene_description="scene",
        master_product_description="product",
        shots=tuple(shots),
    )


def test_shot_filename_pads_and_hyphenates():
    assert shot_filename(Shot(3, "Hero Lifestyle", "p")) == "03_Hero-Lifestyle.jpg"
    assert shot_filename(Shot(12, "Detail  Close-up", "p")) == "12_Detail--Close-up.jpg"


def test_shot_filename_keeps_slashes_as_zip_folders():
    assert shot_filename(Shot(4, "Top/Side View", "p")) == "04_Top/Side-View.jpg"


def test_download_one_requires_an_image():
    assert download_one(Shot(1, "Wide", "p")) is None

    shot = Shot(1, "Lifestyle Wide", "p", bytes_to_data_url(b"abc", mime="image/jpeg"))
    file = download_one(shot)
    assert file.file_name == "01_Lifestyle-Wide.jpg"
    assert file.data == b"abc"
    assert file.mime == "image/jpeg"


def test_download_all_packs_only_rendered_shots():
    archive = download_all(_scene([True, False, True, False]))

    assert archive.file_name == "japandi-tub-01.zip"
    assert archive.entries == ("01_Shot-Type-1.jpg", "03_Shot-Type-3.jpg")
    with zipfile.ZipFile(io.BytesIO(archive.data)) as zf:
        assert zf.namelist() == list(archive.entries)
        assert zf.read("03_Shot-Type-3.jpg") == b"jpeg-3"


def test_download_all_with_no_rendered_shots_is_an_empty_archive():
    archive = download_all(_scene([False, False]))
    assert archive.entries == ()
    with zipfile.ZipFile(io.BytesIO(archive.data)) as zf:
        assert zf.namelist() == []


def test_download_all_reports_failed_fetches(monkeypatch):
    real_fetch = packager.fetch_image_bytes
    logs = []

    def flaky_fetch(url):
        if "anBlZy0y" in url:  # base64 of "jpeg-2"
            raise ValueError("corrupt image")
        return real_fetch(url)

    monkeypatch.setattr(packager, "fetch_image_bytes", flaky_fetch)
    archive = download_all(_scene([True, True, True]), on_log=logs.append)

    assert archive.entries == ("01_Shot-Type-1.jpg", "03_Shot-Type-3.jpg")
    assert archive.failed == ("02_Shot-Type-2.jpg",)
    assert any("02_Shot-Type-2.jpg" in line for line in logs)


def test_download_all_wraps_archive_errors(monkeypatch):
    def broken_writestr(self, name, data):
        raise OSError("disk full")

    monkeypatch.setattr(zipfile.ZipFile, "writestr", broken_writestr)
    with pytest.raises(PackagingError):
        download_all(_scene([True]))
