"""
Paths for proctoring uploads.

The database stores paths relative to the upload root so the root can be
moved between hosts.
"""
import os
import secrets
import time

from ..core.config import settings


class FileTypes:
    PROCTOR = "proctor"


def get_upload_root() -> str:
    return os.path.abspath(settings.upload_dir)


def get_full_upload_path(relative_path: str) -> str:
    return os.path.join(get_upload_root(), relative_path)


def ensure_session_directory(session_id: int) -> str:
    full_dir = os.path.join(get_upload_root(), FileTypes.PROCTOR, str(session_id))
    os.makedirs(full_dir, exist_ok=True)
    return full_dir


def build_snapshot_filename(original_name: str) -> str:
    ext = os.path.splitext(original_name or "")[1].lower() or ".jpg"
    return f"{int(time.time() * 1000)}_{secrets.token_hex(6)}{ext}"


def to_relative_upload_path(full_path: str) -> str:
    return os.path.relpath(full_path, get_upload_root()).replace(os.sep, "/")
