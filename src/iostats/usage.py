"""Per-UID I/O counter record."""

from dataclasses import dataclass, fields

# Kernel counter fields in order, excluding the uid key
COUNTER_FIELDS = ("fg_read", "fg_write", "bg_read", "bg_write", "fg_fsync", "bg_fsync")


@dataclass
class UserIO:
    """I/O counters for one UID.

    Byte counts are split into foreground and background. Values read from the
    kernel are cumulative; values produced by subtraction are interval deltas.
    """

    uid: int = 0
    fg_read: int = 0
    fg_write: int = 0
    bg_read: int = 0
    bg_write: int = 0
    fg_fsync: int = 0
    bg_fsync: int = 0

    @property
    def read_total(self) -> int:
        return self.fg_read + self.bg_read

    @property
    def write_total(self) -> int:
        return self.fg_write + self.bg_write

    @property
    def fsync_total(self) -> int:
        return self.fg_fsync + self.bg_fsync

    def is_zero(self) -> bool:
        """Return True if every counter is zero (uid is ignored)."""
        return not any(getattr(self, name) for name in COUNTER_FIELDS)

    def reset(self) -> None:
        """Zero every field, uid included."""
        for f in fields(self):
            setattr(self, f.name, 0)

    def decreased_from(self, earlier: "UserIO") -> bool:
        """Return True if any counter went backwards since `earlier`."""
        return any(getattr(self, name) < getattr(earlier, name) for name in COUNTER_FIELDS)

    def __add__(self, other: "UserIO") -> "UserIO":
        return UserIO(
            uid=self.uid,
            **{name: getattr(self, name) + getattr(other, name) for name in COUNTER_FIELDS},
        )

    def __sub__(self, other: "UserIO") -> "UserIO":
        # Counters that went backwards (UID reused after accounting reset) clamp to 0
        return UserIO(
            uid=self.uid,
            **{
                name: max(0, getattr(self, name) - getattr(other, name))
                for name in COUNTER_FIELDS
            },
        )
