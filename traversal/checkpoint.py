"""
Checkpoint Module
Resumable traversal position for inserts and, independently, for deletes
"""

from datetime import datetime
from typing import Optional, Tuple

from .exceptions import InvalidArgumentError, InvalidCursorError

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
EPOCH = datetime(1970, 1, 1)


def _truncate(value: Optional[datetime]) -> Optional[datetime]:
    return None if value is None else value.replace(microsecond=0, tzinfo=None)


class Checkpoint:
    """
    Traversal cursor.

    Serialized as "<insert>[;<delete>]" where each part is
    "YYYY-MM-DD HH:MM:SS,<id>". The insert part is empty before the first
    batch; the event id of the delete part may be empty. A missing delete
    part means deletes are not tracked yet.
    """

    def __init__(self, insert_date: Optional[datetime] = None, insert_id: int = 0,
                 delete_date: Optional[datetime] = None,
                 delete_event_id: Optional[int] = None):
        self.insert_date = _truncate(insert_date)
        self.insert_id = insert_id
        self.delete_date = _truncate(delete_date)
        self.delete_event_id = delete_event_id
        self._insert_window: Optional[Tuple[datetime, int]] = None
        self._delete_window: Optional[Tuple[datetime, Optional[int]]] = None
        self._changed = False

    @classmethod
    def parse(cls, text: Optional[str]) -> 'Checkpoint':
        """
        Parse checkpoint text

        Args:
            text: Serialized checkpoint, or None/empty for a fresh traversal

        Returns:
            Checkpoint instance

        Raises:
            InvalidCursorError: if a present sub-cursor is malformed
        """
        if text is None or not text.strip():
            return cls()

        insert_part, sep, delete_part = text.strip().partition(";")
        checkpoint = cls()
        if insert_part:
            date, ident = cls._parse_part(insert_part, text)
            if ident is None:
                raise InvalidCursorError(f"Invalid checkpoint {text!r}: missing insert id")
            checkpoint.insert_date, checkpoint.insert_id = date, ident
        if sep:
            checkpoint.delete_date, checkpoint.delete_event_id = cls._parse_part(delete_part, text)
        return checkpoint

    @staticmethod
    def _parse_part(part: str, text: str) -> Tuple[datetime, Optional[int]]:
        date_text, sep, ident_text = part.partition(",")
        if not sep:
            raise InvalidCursorError(f"Invalid checkpoint {text!r}: missing ',' in {part!r}")
        try:
            date = datetime.strptime(date_text.strip(), DATE_FORMAT)
            ident = int(ident_text) if ident_text.strip() else None
        except ValueError as e:
            raise InvalidCursorError(f"Invalid checkpoint {text!r}: {e}") from e
        return date, ident

    @classmethod
    def forge_initial(cls, start_date: Optional[datetime] = None,
                      last_delete_event: Optional[Tuple[datetime, Optional[int]]] = None,
                      track_deletes: bool = False) -> 'Checkpoint':
        """
        Create the checkpoint for a brand new traversal

        Args:
            start_date: Configured start date; None traverses from the beginning
            last_delete_event: (AuditDate, EventID) of the newest delete
                event, so existing deletes are not replayed
            track_deletes: Whether delete fields should be seeded at all

        A seeded delete position marks the checkpoint as changed, so the
        first call returns it even when nothing else is found.
        """
        checkpoint = cls()
        if start_date is not None:
            checkpoint.insert_date = _truncate(start_date)
            checkpoint.insert_id = 0
        if track_deletes:
            if last_delete_event is None:
                last_delete_event = (datetime.now(), None)
            checkpoint.set_delete_checkpoint(*last_delete_event)
        return checkpoint

    def set_insert_checkpoint(self, timestamp: Optional[datetime], ident: int):
        self.insert_date = _truncate(timestamp)
        self.insert_id = ident
        self._changed = True

    def set_delete_checkpoint(self, timestamp: Optional[datetime], event_id: Optional[int]):
        if timestamp is None:
            raise InvalidArgumentError("Delete checkpoint requires a timestamp")
        self.delete_date = _truncate(timestamp)
        self.delete_event_id = event_id
        self._changed = True

    def note_insert_window(self, timestamp: datetime, ident: int):
        """Remember the last candidate examined in this scan"""
        self._insert_window = (_truncate(timestamp), ident)

    def note_delete_window(self, timestamp: datetime, event_id: Optional[int]):
        """Remember the last delete event examined in this scan"""
        self._delete_window = (_truncate(timestamp), event_id)

    def advance_to_end(self):
        """Move each sub-cursor to the end of the window examined so far"""
        if self._insert_window is not None and self._insert_window > self.insert_position():
            self.set_insert_checkpoint(*self._insert_window)
        if self._delete_window is not None and self.delete_date is not None:
            window_date, window_event = self._delete_window
            if (window_date, -1 if window_event is None else window_event) > self.delete_position():
                self.set_delete_checkpoint(window_date, window_event)

    def has_changed(self) -> bool:
        return self._changed

    def insert_position(self) -> Tuple[datetime, int]:
        """Comparable (date, id) position; an empty cursor sorts first"""
        return (self.insert_date or EPOCH, self.insert_id if self.insert_date else 0)

    def delete_position(self) -> Tuple[datetime, int]:
        return (self.delete_date or EPOCH,
                -1 if self.delete_event_id is None else self.delete_event_id)

    def __str__(self) -> str:
        text = ""
        if self.insert_date is not None:
            text = f"{self.insert_date.strftime(DATE_FORMAT)},{self.insert_id}"
        if self.delete_date is not None:
            event = "" if self.delete_event_id is None else str(self.delete_event_id)
            text += f";{self.delete_date.strftime(DATE_FORMAT)},{event}"
        return text

    def __repr__(self) -> str:
        return f"Checkpoint({str(self)!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Checkpoint):
            return NotImplemented
        return (self.insert_date, self.insert_id, self.delete_date, self.delete_event_id) == \
            (other.insert_date, other.insert_id, other.delete_date, other.delete_event_id)

    def __hash__(self):
        return hash(str(self))
