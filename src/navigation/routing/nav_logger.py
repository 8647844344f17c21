# nav_logger.py
# Handles all file I/O for the routing session.
# Appends session events as JSON lines and removes routing data files.

import json
import os
import logging
from datetime import datetime
from typing import Optional

from .geo_utils import x_to_lon, y_to_lat
from .models import FollowingInfo, GpsInfo, SessionState
from .nav_config import NavConfig

# Standard Python logger; configure at app entry point if needed
logger = logging.getLogger(__name__)


class NavLogger:
    """
    File side effects of a RoutingSession.

    Args:
        config: NavConfig instance for file paths and the event log switch.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        if self.config.event_log_enabled:
            os.makedirs(self.config.log_dir, exist_ok=True)

    # ------------------------------------------------------------------
    # Session event logging
    # ------------------------------------------------------------------

    def log_event(
        self,
        state: SessionState,
        info: GpsInfo,
        follow: Optional[FollowingInfo] = None,
    ) -> None:
        """
        Append a single processed fix to the session log file.

        Args:
            state:  Session state after the fix.
            info:   The fix itself.
            follow: Progress snapshot after the fix, if any.
        """
        if not self.config.event_log_enabled:
            return
        entry = {
            "timestamp": datetime.now().isoformat(),
            "fix_time": info.timestamp,
            "lat": y_to_lat(info.position.y),
            "lon": x_to_lon(info.position.x),
            "accuracy": info.horizontal_accuracy,
            "state": state.value,
            "follow": follow.to_dict() if follow is not None else None,
        }
        try:
            with open(self.config.event_log_filepath, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except IOError as e:
            logger.error(f"Failed to write event log: {e}")

    # ------------------------------------------------------------------
    # Routing data files
    # ------------------------------------------------------------------

    def remove_file(self, filepath: str) -> bool:
        """
        Best-effort file deletion. Never raises.

        Returns:
            True if the file was removed.
        """
        try:
            os.remove(filepath)
        except FileNotFoundError:
            logger.info(f"Routing data {filepath} does not exist, nothing to delete.")
            return False
        except OSError as e:
            logger.warning(f"Failed to delete routing data {filepath}: {e}")
            return False
        logger.info(f"Routing data {filepath} deleted.")
        return True
