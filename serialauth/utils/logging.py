# MIT License © 2025 Motohiro Suzuki
"""
serialauth/utils/logging.py

One logger per module under the "serialauth." namespace.
- A single stream handler is installed on the package root logger.
- Messages are grep-able: "[component] event key=value ...".
- Key material and MAC tags MUST NOT be logged.
"""

from __future__ import annotations

import logging

_ROOT = "serialauth"
_FORMAT = "%(levelname)s:%(name)s:%(message)s"


def _ensure_root_handler() -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Return the logger for a module (pass __name__).

    Names already under "serialauth." are used as-is, anything else is
    nested below it.
    """
    _ensure_root_handler()
    if name == _ROOT or name.startswith(_ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT}.{name}")


def set_level(level: int) -> None:
    _ensure_root_handler().setLevel(level)
