"""Access guard — who may act on notes.

Two states: ANONYMOUS and AUTHENTICATED(identity). A request becomes
authenticated only by presenting a token SessionManager can reverse.
Note operations call ``require()`` first, before any store access, and
then ``ensure_owner()`` once the target note is loaded.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

from notebox.db.models import Identity
from notebox.errors import AuthorizationFailure, NotFoundOrNotOwned


class GuardState(str, enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AccessGuard:
    identity: Optional[Identity] = None

    @property
    def state(self) -> GuardState:
        if self.identity is None:
            return GuardState.ANONYMOUS
        return GuardState.AUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.state is GuardState.AUTHENTICATED

    def require(self) -> Identity:
        if self.identity is None:
            raise AuthorizationFailure("login required")
        return self.identity

    def ensure_owner(self, owner_id: Optional[uuid.UUID]) -> None:
        """Raise NotFoundOrNotOwned unless the loaded note is ours.

        ``owner_id`` is None when the note was not found at all.
        """
        identity = self.require()
        if owner_id is None or owner_id != identity.id:
            raise NotFoundOrNotOwned()
