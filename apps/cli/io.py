"""CLI I/O helpers for atomic output writing."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from core.session.controller import DownloadArtifact


def build_output_path(out_dir: Path, artifact: DownloadArtifact) -> Path:
    """Build the fixed image output path under out_dir."""

    return out_dir / artifact.filename


def write_artifact_atomic(path: Path, artifact: DownloadArtifact) -> None:
    """Write the image bytes using a temporary file + replace."""

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        tmp_path.write_bytes(artifact.content)
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
