"""UID to display name resolution.

Two strategies, chosen by UID range:
- Application UIDs (>= AID_APP_START): scan /proc/<pid>/status for processes
  owned by the UID and use their command name.
- System UIDs: look the UID up in the user database (pwd).

Resolved names are cached for the lifetime of the process and never evicted.
"""

import pwd
import re
from pathlib import Path

import structlog

from iostats.config import IoStatsConfig

log = structlog.get_logger()

# First UID of the application range
AID_APP_START = 10000

_NAME_RE = re.compile(r"^Name:[ \t]*(\S+)", re.MULTILINE)
_UID_RE = re.compile(r"^Uid:[ \t]*(\S+)", re.MULTILINE)


def is_app_uid(uid: int) -> bool:
    return uid >= AID_APP_START


def parse_status(text: str) -> tuple[str, int] | None:
    """Extract (command name, real uid) from a /proc/<pid>/status block.

    Returns None if either field is missing or the uid is not numeric.
    """
    name_match = _NAME_RE.search(text)
    if name_match is None:
        return None
    uid_match = _UID_RE.search(text, name_match.end())
    if uid_match is None:
        return None
    try:
        uid = int(uid_match.group(1))
    except ValueError:
        return None
    if uid < 0:
        return None
    return name_match.group(1), uid


class ProcessScanner:
    """Incremental scanner mapping UIDs to command names of their processes.

    Only PIDs that were not present in the previous scan have their status
    read, so steady-state cost is bounded by process churn.
    """

    def __init__(self, proc_root: Path = Path("/proc"), verbose: bool = False) -> None:
        self.proc_root = proc_root
        self.verbose = verbose
        self.uid_names: dict[int, str] = {}
        self._prev_pids: set[int] = set()
        self._curr_pids: set[int] = set()

    @property
    def pids(self) -> set[int]:
        """PIDs seen by the latest scan (returns a copy)."""
        return set(self._curr_pids)

    def _list_pids(self) -> set[int]:
        pids = set()
        for entry in self.proc_root.iterdir():
            if entry.name.isdigit() and entry.is_dir():
                pids.add(int(entry.name))
        return pids

    def new_pids(self) -> list[int]:
        """PIDs in the current scan that were absent from the previous one."""
        return sorted(self._curr_pids - self._prev_pids)

    def refresh(self, force_all: bool = False) -> None:
        """Rescan the process list and read status for new PIDs.

        Args:
            force_all: Forget the previous PID list so every live process is read
        """
        self._prev_pids = set() if force_all else self._curr_pids
        self._curr_pids = set()
        try:
            self._curr_pids = self._list_pids()
        except OSError as e:
            log.error("proc_list_failed", path=str(self.proc_root), error=str(e))
            return

        for pid in self.new_pids():
            status_path = self.proc_root / str(pid) / "status"
            try:
                text = status_path.read_text(errors="replace")
            except OSError:
                if self.verbose:
                    log.info("status_read_failed", pid=pid, reason="process exited?")
                continue
            parsed = parse_status(text)
            if parsed is None:
                continue
            name, uid = parsed
            self.uid_names[uid] = name

    def name_for_uid(self, uid: int) -> str | None:
        return self.uid_names.get(uid)


class NameResolver:
    """Append-only UID -> name cache fed by the two lookup strategies."""

    def __init__(self, scanner: ProcessScanner, config: IoStatsConfig) -> None:
        self.scanner = scanner
        self.config = config
        self._names: dict[int, str] = {}

    def __contains__(self, uid: int) -> bool:
        return uid in self._names

    def __len__(self) -> int:
        return len(self._names)

    @property
    def names(self) -> dict[int, str]:
        """Resolved names (returns a copy)."""
        return dict(self._names)

    def lookup(self, uid: int) -> str | None:
        return self._names.get(uid)

    def resolve(self, pending: set[int], force_all: bool = False) -> set[int]:
        """Resolve pending UIDs into the cache.

        Performs one process scan per call, and only when there is something
        to resolve. UIDs already cached are left untouched.

        Args:
            pending: UIDs to name
            force_all: Read every live process instead of only new ones

        Returns:
            UIDs that could not be resolved this time
        """
        todo = sorted(uid for uid in pending if uid not in self._names)
        if not todo:
            return set()

        self.scanner.verbose = self.config.verbose
        self.scanner.refresh(force_all=force_all)

        unresolved = set()
        for uid in todo:
            name = self._resolve_one(uid)
            if name is None:
                unresolved.add(uid)
                continue
            self._names[uid] = name

        if unresolved and self.config.verbose:
            log.warning("uid_names_unresolved", uids=sorted(unresolved))
        return unresolved

    def _resolve_one(self, uid: int) -> str | None:
        if is_app_uid(uid):
            name = self.scanner.name_for_uid(uid)
            if name is None and self.config.verbose:
                log.warning("app_uid_not_found", uid=uid)
            return name

        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            if self.config.verbose:
                log.warning("uid_not_in_passwd", uid=uid)
            return None
