from collections.abc import Callable

from ._logging import logger
from .actions import NavigationAction

ActionListener = Callable[[NavigationAction], None]


class ActionChannel:
    """
    Single-slot broadcast of the most recent navigation action.

    Only the latest action is kept. A listener attached with subscribe()
    receives that action immediately, then every action published afterwards.
    There is at most one listener: the paginator's active pipeline.
    """

    def __init__(self, initial: NavigationAction | str = NavigationAction.FIRST) -> None:
        self._latest = NavigationAction(initial)
        self._listener: ActionListener | None = None

    @property
    def latest(self) -> NavigationAction:
        return self._latest

    def publish(self, action: NavigationAction | str) -> None:
        """Stores the action as latest and hands it to the listener, if any."""
        self._latest = NavigationAction(action)
        logger.debug("Action published", extra={"action": self._latest.value})
        if self._listener is not None:
            self._listener(self._latest)

    def subscribe(self, listener: ActionListener) -> None:
        """Attaches the listener, replacing any previous one, and replays the latest action."""
        self._listener = listener
        listener(self._latest)

    def detach(self, listener: ActionListener) -> None:
        """Removes the listener if it is still the attached one."""
        if self._listener == listener:
            self._listener = None
