import logging
import re
import subprocess
from pathlib import Path
from datetime import datetime
from typing import Optional, Tuple, Dict, Any

import exifread
from pymediainfo import MediaInfo

from .. import config
from ..models import MediaMetadata, MediaType

QUICKTIME_MODEL_RE = re.compile(r'^\s*com\.apple\.quicktime\.model\s*: (.*)$', re.MULTILINE)
QUICKTIME_CREATIONDATE_RE = re.compile(r'^\s*com\.apple\.quicktime\.creationdate\s*: (.*)$', re.MULTILINE)


class MetadataExtractor:
    """
    Best-effort metadata resolver.

    Strategies:
      - Images: 'exifread' (fast, Python-native).
      - Video: 'pymediainfo' (fast wrapper) -> falls back to 'ffprobe' output.

    resolve() never raises: anything unreadable degrades to a record with no
    capture time and no camera, typed from the extension.
    """

    def resolve(self, path: Path, media_type_hint: Optional[str]) -> MediaMetadata:
        media_type = self._classify(path, media_type_hint)
        capture_dt = None
        camera = None

        try:
            if media_type in (MediaType.PHOTO, MediaType.SCREENSHOT):
                capture_dt, camera = self.get_image_metadata(path)
            elif media_type is MediaType.VIDEO:
                capture_dt, camera = self.get_video_metadata(path)
        except Exception as e:
            logging.debug(f"Metadata resolution failed for {path}: {e}")
            capture_dt, camera = None, None

        return MediaMetadata(media_type=media_type, capture_time=capture_dt, camera_model=camera)

    def _classify(self, path: Path, hint: Optional[str]) -> MediaType:
        media_type = MediaType.from_hint(hint or config.EXT_TO_TYPE.get(path.suffix.lower()))
        if media_type is MediaType.PHOTO and config.SCREENSHOT_MARKER in path.name.lower():
            return MediaType.SCREENSHOT
        return media_type

    def get_image_metadata(self, path: Path) -> Tuple[Optional[datetime], Optional[str]]:
        """
        Extracts metadata from image files.

        Returns:
            (capture_datetime, camera_model)
        """
        try:
            with path.open('rb') as f:
                # details=False speeds up processing significantly
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            logging.debug(f"ExifRead failed for {path}: {e}")
            return None, None

        dt = self._parse_exif_date(tags)

        camera = None
        if config.MODEL_TAG in tags:
            camera = clean_camera_model(str(tags[config.MODEL_TAG]))

        return dt, camera

    def get_video_metadata(self, path: Path) -> Tuple[Optional[datetime], Optional[str]]:
        """
        Extracts metadata from video files.

        Returns:
            (capture_datetime, camera_model)
        """
        # Strategy 1: MediaInfo (in-process, usually sufficient)
        try:
            mi_data = self._extract_mediainfo(path)
            if mi_data['dt'] or mi_data['camera']:
                return mi_data['dt'], mi_data['camera']
        except Exception as e:
            logging.debug(f"MediaInfo failed for {path}: {e}")

        # Strategy 2: ffprobe (requires system install)
        try:
            ff_data = self._extract_ffprobe(path)
            return ff_data['dt'], ff_data['camera']
        except (OSError, subprocess.SubprocessError) as e:
            # Only log at debug level to avoid spamming console if tool is missing
            logging.debug(f"ffprobe failed for {path}: {e}")

        return None, None

    # --- Internal Extraction Helpers ---

    def _extract_mediainfo(self, path: Path) -> Dict[str, Any]:
        """Parses video using pymediainfo."""
        mi = MediaInfo.parse(str(path))
        data: Dict[str, Any] = {'dt': None, 'camera': None}

        for track in mi.tracks:
            if track.track_type != "General":
                continue

            # QuickTime keys first, they carry the local capture time
            date_candidates = [
                "comapplequicktimecreationdate",
                "recorded_date",
                "encoded_date",
                "tagged_date",
            ]
            for field in date_candidates:
                val = getattr(track, field, None)
                if val:
                    dt = parse_flexible_date(str(val))
                    if dt:
                        data['dt'] = dt
                        break

            camera = (
                getattr(track, "comapplequicktimemodel", None) or
                getattr(track, "performer", None) or
                getattr(track, "device_model", None)
            )
            if camera:
                data['camera'] = clean_camera_model(str(camera))
        return data

    def _extract_ffprobe(self, path: Path) -> Dict[str, Any]:
        """
        Runs 'ffprobe' and pattern-matches its (stderr) metadata dump.
        A non-zero exit status yields no data; a missing tag is not an error.
        """
        result = subprocess.run(
            ["ffprobe", str(path)],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
        return parse_ffprobe_output(result.stdout if result.returncode == 0 else "")

    def _parse_exif_date(self, tags) -> Optional[datetime]:
        """Helper to parse standard EXIF date strings from exifread."""
        for tag in config.DATE_TAGS:
            if tag in tags:
                try:
                    # EXIF format is usually "YYYY:MM:DD HH:MM:SS"
                    dt_str = str(tags[tag]).replace(':', '-', 2)
                    return datetime.strptime(dt_str, "%Y-%m-%d %H:%M:%S")
                except ValueError:
                    continue
        return None


def parse_ffprobe_output(output: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {'dt': None, 'camera': None}

    if match := QUICKTIME_MODEL_RE.search(output):
        data['camera'] = clean_camera_model(match.group(1))

    if match := QUICKTIME_CREATIONDATE_RE.search(output):
        data['dt'] = parse_flexible_date(match.group(1))

    return data


def parse_flexible_date(dt_str: str) -> Optional[datetime]:
    """
    Handles ISO (QuickTime, MediaInfo) and EXIF-style date strings.
    Returns a naive datetime in the wall-clock time of the recording.
    """
    if not dt_str:
        return None

    clean = dt_str.replace("UTC", "").strip()

    # 1. ISO format (e.g. 2020-01-01T12:00:00+0100)
    try:
        return datetime.fromisoformat(clean).replace(tzinfo=None)
    except ValueError:
        pass

    # 2. EXIF style "YYYY:MM:DD HH:MM:SS"
    try:
        clean_exif = clean.replace(":", "-", 2)
        # Drop sub-second precision, strptime can't take it with this format
        if "." in clean_exif:
            clean_exif = clean_exif.split(".")[0]
        return datetime.strptime(clean_exif[:19], "%Y-%m-%d %H:%M:%S")
    except ValueError:
        pass

    return None


def clean_camera_model(model: str) -> Optional[str]:
    """Strips padding and keeps a model name to a single path component."""
    clean = model.replace('\x00', '').strip()
    clean = clean.replace('/', '_').replace('\\', '_')
    if clean in ('', '.', '..'):
        return None
    return clean
