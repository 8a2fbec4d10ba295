"""
Checkpoint Store Module
Persists the traversal checkpoint between host calls
"""

import os
import json
import logging
from typing import Dict, Optional
from datetime import datetime

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Keeps the last checkpoint and traversal statistics in a JSON file"""

    def __init__(self, path: str = "traversal_checkpoint.json"):
        """
        Initialize checkpoint store

        Args:
            path: Path to the checkpoint file
        """
        self.path = path
        self.data = self._load()

    def _load(self) -> Dict:
        """Load previous checkpoint data"""
        if os.path.exists(self.path):
            with open(self.path, 'r') as f:
                return json.load(f)

        return {
            "checkpoint": None,
            "last_traversal": None,
            "inserts_delivered": 0,
            "deletes_delivered": 0
        }

    def _save(self):
        """Write checkpoint data atomically"""
        temp_path = f"{self.path}.tmp"
        with open(temp_path, 'w') as f:
            json.dump(self.data, f, indent=2)
        os.replace(temp_path, self.path)
        logger.debug(f"Saved checkpoint to {self.path}")

    @property
    def checkpoint(self) -> Optional[str]:
        return self.data.get("checkpoint")

    def save_checkpoint(self, checkpoint: str, inserts: int = 0, deletes: int = 0):
        """
        Record a new checkpoint

        Args:
            checkpoint: Checkpoint text to resume from
            inserts: Number of inserted/updated records delivered with it
            deletes: Number of deletes delivered with it
        """
        self.data["checkpoint"] = checkpoint
        self.data["last_traversal"] = datetime.now().isoformat()
        self.data["inserts_delivered"] = self.data.get("inserts_delivered", 0) + inserts
        self.data["deletes_delivered"] = self.data.get("deletes_delivered", 0) + deletes
        self._save()

    def get_last_traversal_time(self) -> str:
        """Get last traversal timestamp"""
        return self.data.get("last_traversal") or "Never"
