"""
Image corruption probe.

Runs ImageMagick's 'identify -verbose' and treats a failed run or any mention
of corruption in its output as a corrupted file. When ImageMagick is not
installed, Pillow decodes the image instead.
"""
import logging
import re
import subprocess
from pathlib import Path

from PIL import Image

CORRUPT_RE = re.compile('corrupt', re.IGNORECASE)


def is_image_corrupted(path: Path) -> bool:
    try:
        result = subprocess.run(
            ["magick", "identify", "-verbose", str(path)],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except FileNotFoundError:
        logging.debug("ImageMagick not found, verifying with Pillow.")
        return _fails_to_decode(path)

    if result.returncode != 0:
        return True

    return bool(CORRUPT_RE.search(result.stdout))


def _fails_to_decode(path: Path) -> bool:
    try:
        with Image.open(path) as im:
            im.verify()
        # verify() leaves the image unusable; reopen for a full decode,
        # which is what catches truncated files.
        with Image.open(path) as im:
            im.load()
    except Exception as e:
        logging.debug(f"Pillow could not decode {path}: {e}")
        return True
    return False
