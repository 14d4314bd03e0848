from __future__ import annotations

__version__ = "0.3.0"

from .tracker import Tracker, TrackerState  # noqa: E402

__all__ = ["Tracker", "TrackerState", "__version__"]
