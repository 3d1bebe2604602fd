"""
Per-browser DID login state kept in the signed cookie session.

Only three keys are ever written:

- ``did_state``: the RandomNumber of the challenge this browser is waiting on
- ``did_info``: snapshot of the verified challenge, set by the poll endpoint
- ``account_id``: the logged-in account once a completion step succeeds
"""

from typing import Any, MutableMapping

PENDING_STATE_KEY = "did_state"
RESOLVED_KEY = "did_info"
ACCOUNT_KEY = "account_id"


class SessionBridge:
    def __init__(self, session: MutableMapping[str, Any]) -> None:
        self._session = session

    @property
    def pending_state(self) -> str | None:
        value = self._session.get(PENDING_STATE_KEY)
        return str(value) if value else None

    @pending_state.setter
    def pending_state(self, state: str | None) -> None:
        if state is None:
            self._session.pop(PENDING_STATE_KEY, None)
        else:
            self._session[PENDING_STATE_KEY] = state

    @property
    def resolved_challenge(self) -> dict | None:
        value = self._session.get(RESOLVED_KEY)
        return value if isinstance(value, dict) else None

    @resolved_challenge.setter
    def resolved_challenge(self, snapshot: dict | None) -> None:
        if snapshot is None:
            self._session.pop(RESOLVED_KEY, None)
        else:
            self._session[RESOLVED_KEY] = snapshot

    @property
    def account_id(self) -> str | None:
        return self._session.get(ACCOUNT_KEY)

    def login(self, account_id: str) -> None:
        self._session.pop(PENDING_STATE_KEY, None)
        self._session.pop(RESOLVED_KEY, None)
        self._session[ACCOUNT_KEY] = account_id

    def clear(self) -> None:
        for key in (PENDING_STATE_KEY, RESOLVED_KEY, ACCOUNT_KEY):
            self._session.pop(key, None)
