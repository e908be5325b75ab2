"""
RTSP helpers for IP camera frame sources.

Credentials live in a separate secrets file so that config files can be
shared without leaking them, and URLs are sanitized before being logged.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Union
from urllib.parse import urlparse, urlunparse

import yaml

logger = logging.getLogger(__name__)


def is_rtsp_url(device_id: Union[int, str]) -> bool:
    return isinstance(device_id, str) and device_id.startswith(("rtsp://", "rtsps://"))


def sanitize_url(device_id: Union[int, str]) -> str:
    """Return a loggable representation of a device id with any password masked."""
    if not is_rtsp_url(device_id):
        return str(device_id)
    parsed = urlparse(device_id)
    if not parsed.password:
        return device_id
    netloc = f"{parsed.username}:***@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse((
        parsed.scheme, netloc, parsed.path,
        parsed.params, parsed.query, parsed.fragment,
    ))


def inject_rtsp_credentials(camera_cfg: Dict[str, Any]) -> None:
    """
    Inject RTSP credentials from a secrets file into the camera config.

    Args:
        camera_cfg: Camera configuration dict (modified in-place).
            Uses ``secrets_file`` and ``device_id``.

    The secrets file should contain:
        username: <rtsp_username>
        password: <rtsp_password>
        rtsp_url: rtsp://host:port/path  # Optional, used if device_id is not RTSP

    Raises:
        ValueError: If the secrets file is not a YAML mapping.
    """
    secrets_file = camera_cfg.get("secrets_file")
    if not secrets_file:
        return

    if not os.path.exists(secrets_file):
        logger.warning(f"Secrets file not found: {secrets_file}")
        return

    with open(secrets_file, "r") as f:
        secrets = yaml.safe_load(f) or {}
    if not isinstance(secrets, dict):
        raise ValueError(f"Secrets file {secrets_file} must contain a mapping")

    username = secrets.get("username")
    password = secrets.get("password")
    device_id = camera_cfg.get("device_id", "")

    # Priority: existing RTSP device_id > rtsp_url from secrets
    if is_rtsp_url(device_id):
        base_url = device_id
    elif secrets.get("rtsp_url"):
        base_url = secrets["rtsp_url"]
        logger.info("Using RTSP URL from secrets file")
    else:
        return

    if username and password and "@" not in base_url:
        parsed = urlparse(base_url)
        netloc = f"{username}:{password}@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        base_url = urlunparse((
            parsed.scheme, netloc, parsed.path,
            parsed.params, parsed.query, parsed.fragment,
        ))
        logger.info("RTSP credentials injected into device URL")

    camera_cfg["device_id"] = base_url
