"""Content fingerprints for receipt images and OCR fragment sets."""

import hashlib
import json
from pathlib import Path
from typing import Sequence

from .models import OCRResult


def file_hash(file_path: Path) -> str:
    """Get MD5 hash of a file, read in chunks."""
    hash_md5 = hashlib.md5()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(4096), b""):
            hash_md5.update(chunk)
    return hash_md5.hexdigest()


def fragments_fingerprint(fragments: Sequence[OCRResult]) -> str:
    """
    MD5 of the fragments' text and positions.

    Used as the image hash when only OCR output is available. Confidence is
    left out so re-running the same OCR engine gives the same fingerprint.
    """
    payload = [
        {'text': f.text, 'bbox': f.bbox.to_dict() if f.bbox else None}
        for f in fragments
    ]
    encoded = json.dumps(payload, ensure_ascii=False, sort_keys=True).encode('utf-8')
    return hashlib.md5(encoded).hexdigest()
