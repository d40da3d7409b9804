import logging
import threading
from typing import Dict, List, Optional, Tuple

from models import Session

logger = logging.getLogger(__name__)


class UserRegistry:
    """
    Directory of registered display names -> Session.

    One instance per server process, handed to every SessionHandler and to the
    MessageRouter. Every operation runs under a single lock: mutations are
    mutually exclusive, and reads always see a complete state. Nothing is ever
    written to a connection while the lock is held.

    Names are case-sensitive and must be non-empty.
    """

    def __init__(self) -> None:
        self._users: Dict[str, Session] = {}
        self._lock = threading.Lock()

    # --- Mutations ---

    def register(self, name: str, session: Session) -> bool:
        """
        Insert name -> session iff the name is free. Check and insert happen
        in one critical section, so two racing registrations of the same name
        cannot both win.

        On success the session's `name` is set as well.
        """
        if not name:
            return False
        with self._lock:
            if name in self._users:
                return False
            self._users[name] = session
            session.name = name
        logger.debug("Registered '%s'", name)
        return True

    def unregister(self, name: Optional[str]) -> None:
        """Remove the entry if present. Missing names are ignored."""
        if not name:
            return
        with self._lock:
            removed = self._users.pop(name, None)
        if removed is not None:
            logger.debug("Unregistered '%s'", name)

    def rename(self, old_name: str, new_name: str) -> bool:
        """
        Move old_name's session to new_name as one atomic step.

        Fails without touching anything when new_name is taken (including by
        the caller itself) or old_name is not registered.
        """
        if not new_name:
            return False
        with self._lock:
            if new_name in self._users:
                return False
            session = self._users.pop(old_name, None)
            if session is None:
                return False
            self._users[new_name] = session
            session.name = new_name
        logger.debug("Renamed '%s' -> '%s'", old_name, new_name)
        return True

    # --- Reads ---

    def lookup(self, name: str) -> Optional[Session]:
        with self._lock:
            return self._users.get(name)

    def snapshot(self) -> List[str]:
        """
        Sorted names registered at this instant. May be stale as soon as it
        returns.
        """
        with self._lock:
            names = list(self._users)
        return sorted(names)

    def sessions(self) -> List[Tuple[str, Session]]:
        """Point-in-time copy of (name, session) pairs, for fan-out outside the lock."""
        with self._lock:
            return list(self._users.items())

    def count(self) -> int:
        with self._lock:
            return len(self._users)

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None
