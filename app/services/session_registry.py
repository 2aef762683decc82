"""User -> live channel bindings (process local, not persisted)."""
import logging

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Maps a user id to the one channel currently receiving their job updates.

    A later registration for the same user supersedes the earlier one. All
    mutation happens on the event loop thread, so no locking is needed.
    """

    def __init__(self) -> None:
        self._channels: dict[int, str] = {}

    def register(self, user_id: int, channel_id: str) -> None:
        previous = self._channels.get(user_id)
        self._channels[user_id] = channel_id
        if previous and previous != channel_id:
            logger.info("user=%s channel %s superseded by %s", user_id, previous, channel_id)

    def remove(self, channel_id: str) -> None:
        # Close events only carry the channel id, hence the lookup by value.
        # A superseded channel no longer matches and leaves the newer binding alone.
        for user_id, bound in self._channels.items():
            if bound == channel_id:
                del self._channels[user_id]
                break

    def resolve(self, user_id: int) -> str | None:
        return self._channels.get(user_id)

    def __len__(self) -> int:
        return len(self._channels)
