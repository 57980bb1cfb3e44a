import threading
from collections import OrderedDict
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence

UsernameLoader = Callable[[Sequence[str]], Mapping[str, str]]


class NicknameCache:
    """Bounded LRU of user id -> username.

    One instance is owned by the application (``app.state.nickname_cache``).
    It has no storage of its own: callers pass the loader used to fill misses,
    typically ``PuzzleStore.usernames_for`` bound to the request session.
    Ids the loader cannot resolve are not cached.
    """

    def __init__(self, max_entries: int = 512):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._entries)

    def get(self, user_id: str) -> Optional[str]:
        with self._lock:
            username = self._entries.get(user_id)
            if username is not None:
                self._entries.move_to_end(user_id)
            return username

    def put(self, user_id: str, username: str) -> None:
        with self._lock:
            self._entries[user_id] = username
            self._entries.move_to_end(user_id)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def resolve_many(self, user_ids: Iterable[str], loader: UsernameLoader) -> Dict[str, str]:
        resolved = {}
        missing = []
        for user_id in dict.fromkeys(user_ids):
            username = self.get(user_id)
            if username is None:
                missing.append(user_id)
            else:
                resolved[user_id] = username

        if missing:
            for user_id, username in loader(missing).items():
                self.put(user_id, username)
                resolved[user_id] = username
        return resolved

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)
