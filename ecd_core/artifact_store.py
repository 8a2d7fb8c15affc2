#!/usr/bin/env python3
import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from datetime import datetime

from ecd_core.models import ConfirmationArtifact

logger = logging.getLogger(__name__)

ARTIFACT_PREFIX = "customs-submission"


def _ensure_base(preferred: Path, leaf: str = "artifacts") -> Path:
    candidates = [
        Path(preferred),
        Path(os.path.expanduser("~")) / ".cache" / "ecd" / leaf,
        Path("/tmp/ecd") / leaf,
    ]
    for cand in candidates:
        try:
            cand.mkdir(parents=True, exist_ok=True)
            test = cand / ".writetest"
            with open(test, "w") as f:
                f.write("ok")
            test.unlink(missing_ok=True)
            return cand
        except OSError as e:
            logger.debug(f"{cand} not writable: {e}")
            continue
    return Path(preferred)


def _timestamp(moment: datetime) -> str:
    return moment.strftime("%Y%m%d-%H%M%S-%f")


def _unique_stem(base: Path, prefix: str, moment: datetime, ext: str) -> str:
    stem = f"{prefix}-{_timestamp(moment)}"
    n = 1
    candidate = stem
    while (base / f"{candidate}.{ext}").exists() or (base / f"{candidate}.json").exists():
        n += 1
        candidate = f"{stem}-{n}"
    return candidate


def sidecar_for(artifact: ConfirmationArtifact, filename: str, original_path: Optional[Path]) -> Dict[str, Any]:
    return {
        "submissionDetails": {
            "registrationNumber": artifact.registration_number,
            "portInfo": artifact.port_info,
            "customsOffice": artifact.customs_office,
            "message": artifact.message,
        },
        "qrCodeInfo": {
            "method": artifact.capture_method.value,
            "format": artifact.image.format,
            "width": artifact.image.width,
            "height": artifact.image.height,
            "success": True,
            "originalPath": str(original_path) if original_path else None,
        },
        "captureMethod": artifact.capture_method.value,
        "extractedAt": artifact.extracted_at.isoformat(),
        "filename": filename,
    }


def save_artifact(
    artifact: ConfirmationArtifact,
    base_dir: Path,
    original_path: Optional[Path] = None,
) -> Tuple[Path, Path]:
    """
    Write the image and its JSON sidecar, both named after the capture time.

    The intermediate download (if any) is removed once the copy is on disk.
    Returns (image_path, sidecar_path).
    """
    base = _ensure_base(base_dir)
    ext = artifact.image.format or "png"
    stem = _unique_stem(base, ARTIFACT_PREFIX, artifact.extracted_at, ext)
    image_path = base / f"{stem}.{ext}"
    sidecar_path = base / f"{stem}.json"

    with open(image_path, "wb") as f:
        f.write(artifact.image.data)
    with open(sidecar_path, "w", encoding="utf-8") as f:
        json.dump(sidecar_for(artifact, image_path.name, original_path), f, ensure_ascii=False, indent=2)
    logger.info(f"💾 Confirmation saved: {image_path}")

    if original_path is not None and Path(original_path).exists() and Path(original_path) != image_path:
        try:
            Path(original_path).unlink()
        except OSError as e:
            logger.warning(f"Could not remove intermediate download {original_path}: {e}")
    return image_path, sidecar_path
