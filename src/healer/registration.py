"""Parent registration node management.

Workers register as ephemeral children of one persistent parent znode. The
parent has to exist before any children read, and it must outlive every
individual session, so it is created ``PERSISTENT``. Creation is
create-if-absent; losing the create race to another healer instance is a
success, not an error.
"""

from __future__ import annotations

from healer.coordination.client import CoordinationClient, Durability
from healer.core.errors import NodeExistsError
from healer.core.logging import get_logger

logger = get_logger(__name__)


class RegistrationManager:
    """Ensures the parent registration node exists.

    Every call arms an existence watch on the parent, so a later deletion
    (or re-creation) of the parent reaches the supervisor as an event.
    """

    def __init__(self, client: CoordinationClient, parent_path: str) -> None:
        self._client = client
        self._parent_path = parent_path

    @property
    def parent_path(self) -> str:
        return self._parent_path

    def ensure_parent_registered(self) -> bool:
        """Create the parent node if absent.

        Returns:
            True if this call created the node, False if it already existed
            (including when another instance created it concurrently).
        """
        status = self._client.exists(self._parent_path, watch=True)
        if status is not None:
            logger.info(
                "registration.present",
                path=self._parent_path,
                num_children=status.num_children,
            )
            return False

        logger.info("registration.absent", path=self._parent_path)
        try:
            self._client.create(self._parent_path, b"", Durability.PERSISTENT)
        except NodeExistsError:
            logger.info("registration.lost_create_race", path=self._parent_path)
            created = False
        else:
            logger.info("registration.created", path=self._parent_path)
            created = True

        # Creating the node consumed the watch armed on it while absent
        self._client.exists(self._parent_path, watch=True)
        return created
