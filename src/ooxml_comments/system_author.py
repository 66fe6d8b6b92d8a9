"""Internal helpers for resolving system/default author information."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional, Tuple

DEFAULT_AUTHOR = "DAC"

ENV_AUTHOR = "OOXML_COMMENTS_AUTHOR"
ENV_INITIALS = "OOXML_COMMENTS_INITIALS"
ENV_USE_OFFICE_USER = "OOXML_COMMENTS_USE_OFFICE_USER"


def _system_office_user_info() -> Tuple[Optional[str], Optional[str]]:
    if sys.platform == "darwin":
        return _macos_office_user_info()
    if sys.platform.startswith("win"):
        return _windows_office_user_info()
    return None, None


def _macos_office_user_info() -> Tuple[Optional[str], Optional[str]]:
    path = Path.home() / "Library/Group Containers/UBF8T346G9.Office/MeContact.plist"
    if not path.exists():
        return None, None
    try:
        import plistlib

        with path.open("rb") as handle:
            data = plistlib.load(handle)
    except (OSError, ValueError, plistlib.InvalidFileException):
        return None, None

    if not isinstance(data, dict):
        return None, None

    name = data.get("Name")
    initials = data.get("Initials")
    if not isinstance(name, str):
        name = None
    if not isinstance(initials, str):
        initials = None
    return name, initials


def _windows_office_user_info() -> Tuple[Optional[str], Optional[str]]:
    try:
        import winreg  # type: ignore[import-not-found]
    except ImportError:
        return None, None

    keys = [
        r"Software\Microsoft\Office\Common\UserInfo",
        r"Software\Microsoft\Office\16.0\Common\UserInfo",
    ]
    for key_path in keys:
        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, key_path) as key:
                name, _ = winreg.QueryValueEx(key, "UserName")
                initials, _ = winreg.QueryValueEx(key, "UserInitials")
                if not isinstance(name, str):
                    name = None
                if not isinstance(initials, str):
                    initials = None
                return name, initials
        except OSError:
            continue
    return None, None


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def initials_for(name: str) -> str:
    """Derive initials from a display name ("Jane Q. Doe" -> "JQD")."""
    words = [word for word in name.replace(",", " ").split() if word]
    return "".join(word[0].upper() for word in words if word[0].isalnum())


def _default_author(
    use_office_user: Optional[bool] = None,
) -> Tuple[str, Optional[str]]:
    """
    Resolve the author used when a caller does not name one.

    Preference order:
    1) ``OOXML_COMMENTS_AUTHOR`` (and ``OOXML_COMMENTS_INITIALS``)
    2) System Office user info (macOS plist / Windows registry), only when
       enabled by argument or ``OOXML_COMMENTS_USE_OFFICE_USER``
    3) ``DEFAULT_AUTHOR``

    Returns:
        (author name, initials or None)
    """
    env_initials = os.environ.get(ENV_INITIALS) or None
    env_author = os.environ.get(ENV_AUTHOR, "").strip()
    if env_author:
        return env_author, env_initials

    if use_office_user is None:
        use_office_user = _env_flag(ENV_USE_OFFICE_USER)
    if use_office_user:
        name, initials = _system_office_user_info()
        if name:
            return name, env_initials or initials

    return DEFAULT_AUTHOR, env_initials
