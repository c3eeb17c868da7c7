from __future__ import annotations

import concurrent.futures
import io
import zipfile
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from shotguide.errors import PackagingError
from shotguide.services.storage import fetch_image_bytes
from shotguide.types import SceneData, Shot

ZIP_MIME = "application/zip"


@dataclass(frozen=True)
class DownloadFile:
    file_name: str
    data: bytes
    mime: str


@dataclass(frozen=True)
class Archive:
    file_name: str
    data: bytes
    entries: Tuple[str, ...] = ()
    # file names of shots whose image could not be fetched
    failed: Tuple[str, ...] = field(default_factory=tuple)
    mime: str = ZIP_MIME


def shot_filename(shot: Shot) -> str:
    """File name for a shot's image; a "/" in shot_type becomes a folder inside the ZIP."""
    return f"{shot.shot_number:02d}_{shot.shot_type.replace(' ', '-')}.jpg"


def download_one(shot: Shot) -> Optional[DownloadFile]:
    if not shot.image_data_url:
        return None
    data, mime = fetch_image_bytes(shot.image_data_url)
    return DownloadFile(file_name=shot_filename(shot), data=data, mime=mime)


def download_all(
    scene: SceneData,
    on_log: Optional[Callable[[str], None]] = None,
    max_workers: int = 4,
) -> Archive:
    """
    Bundle every rendered shot of `scene` into `{scene_id}.zip`.

    - Shots without an image are skipped silently
    - Image bytes are fetched concurrently; a failed fetch is logged and the
      entry left out (listed in `Archive.failed`)
    - Raises PackagingError if the archive itself cannot be written
    """
    log = on_log or (lambda _msg: None)
    ready = [s for s in scene.shots if s.image_data_url]
    fetched: Dict[str, bytes] = {}
    failed: List[str] = []

    if ready:
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {pool.submit(fetch_image_bytes, s.image_data_url): s for s in ready}
            for fut in concurrent.futures.as_completed(futures):
                name = shot_filename(futures[fut])
                try:
                    data, _mime = fut.result()
                except Exception as e:  # noqa: BLE001
                    log(f"⚠️  Could not fetch {name}: {e}")
                    failed.append(name)
                    continue
                fetched[name] = data

    # Entry order follows shot order regardless of fetch completion order
    entries = [shot_filename(s) for s in ready if shot_filename(s) in fetched]
    try:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for name in entries:
                zf.writestr(name, fetched[name])
    except Exception as e:  # noqa: BLE001
        log(f"❌ Error creating ZIP file: {e}")
        raise PackagingError(f"Could not create {scene.scene_id}.zip: {e}") from e

    log(f"📦 Packed {len(entries)} image(s) into {scene.scene_id}.zip")
    return Archive(
        file_name=f"{scene.scene_id}.zip",
        data=buffer.getvalue(),
        entries=tuple(entries),
        failed=tuple(sorted(failed)),
    )
