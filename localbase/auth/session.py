"""
Session simulator.

Keeps one persisted "current session" slot in key-value storage and one
auth state listener. Accounts are rows of the profiles table; passwords
are accepted and ignored.

States:
    signed out --sign_in_with_password/sign_up--> signed in
    signed in  --update_user--> signed in (USER_UPDATED)
    signed in  --sign_out--> signed out

Invariants:
    - The presence of the session entry is the only "signed in" predicate
    - A session entry that cannot be parsed reads as signed out
    - At most one auth listener is registered; registering replaces it
    - Profile and role rows are written through query builders, so table
      subscribers see INSERT/UPDATE events for them
    - Every public method returns an APIResponse; nothing is raised

How to change safely:
    - The session shape {access_token, token_type, user} is persisted;
      add fields, never rename them
    - Keep listener notification after the session write
"""

from __future__ import annotations

import copy
import functools
import json
import logging
import uuid
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..errors import AuthError, ConflictError, NotFoundError, StorageError
from ..response import APIResponse
from ..storage.base import KeyValueStorage
from ..timeutil import now_iso

if TYPE_CHECKING:
    from ..query.builder import QueryBuilder

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"
USER_ROLES_TABLE = "user_roles"


class AuthChangeEvent(str, Enum):
    """Events delivered to the auth state listener."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"


AuthListener = Callable[[AuthChangeEvent, "dict[str, Any] | None"], Any]
TableFactory = Callable[[str], "QueryBuilder"]


class _NestedQueryError(Exception):
    """Carries the error envelope of a nested query up to the auth boundary."""

    def __init__(self, response: APIResponse) -> None:
        super().__init__(response.error.message if response.error else "query failed")
        self.response = response


def _checked(response: APIResponse) -> APIResponse:
    if response.error is not None:
        raise _NestedQueryError(response)
    return response


def _enveloped(method: Callable[..., APIResponse]) -> Callable[..., APIResponse]:
    """Convert exceptions raised by an auth method into an error envelope."""

    @functools.wraps(method)
    def wrapper(*args: Any, **kwargs: Any) -> APIResponse:
        try:
            return method(*args, **kwargs)
        except _NestedQueryError as e:
            return e.response
        except Exception as e:
            logger.info(f"Auth call {method.__name__} failed: {e}")
            return APIResponse.failure(e)

    return wrapper


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class AuthSubscription:
    """Handle returned by on_auth_state_change()."""

    def __init__(self, auth: AuthClient, callback: AuthListener) -> None:
        self._auth = auth
        self.callback = callback

    def unsubscribe(self) -> None:
        """Clear the listener, unless another one has replaced it since."""
        self._auth._clear_listener(self)


class AdminApi:
    """Administrative account operations that leave the session alone."""

    def __init__(self, auth: AuthClient) -> None:
        self._auth = auth

    @_enveloped
    def create_user(
        self,
        email: str,
        password: str | None = None,
        user_metadata: dict[str, Any] | None = None,
        email_confirm: bool = True,
    ) -> APIResponse:
        """Create an account with a role taken from user_metadata["role"].

        Returns:
            APIResponse with data {"user": profile}
        """
        if self._auth._find_profile(email) is not None:
            raise ConflictError("User already exists", details={"email": email})

        metadata = dict(user_metadata or {})
        role = metadata.get("role") or "user"
        profile = self._auth._create_account(email, role=role, metadata=metadata)
        logger.info("Admin created user", extra={"user_id": profile["id"], "role": role})
        return APIResponse(data={"user": profile}, status=201, status_text="Created")


class AuthClient:
    """Simulated auth API over the profiles table and one session slot.

    Example:
        >>> result = engine.auth.sign_in_with_password("user@example.com", "any")
        >>> result.data["user"]["id"]
        'user-123'
        >>> engine.auth.get_session().data["session"]["user"]["email"]
        'user@example.com'
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        table: TableFactory,
        session_key: str = "localbase_session",
    ) -> None:
        """Initialize the simulator.

        Args:
            storage: Key-value storage holding the session entry
            table: Factory returning a query builder for a table name
            session_key: Storage key of the session entry
        """
        self._storage = storage
        self._table = table
        self.session_key = session_key
        self._registration: AuthSubscription | None = None
        self.admin = AdminApi(self)

    # Session slot

    def _read_session(self) -> dict[str, Any] | None:
        raw = self._storage.get_item(self.session_key)
        if raw is None:
            return None
        try:
            session = json.loads(raw)
        except ValueError:
            logger.warning("Persisted session is malformed, treating as signed out")
            return None
        if not isinstance(session, dict) or not isinstance(session.get("user"), dict):
            logger.warning("Persisted session has no user, treating as signed out")
            return None
        return session

    def _write_session(self, session: dict[str, Any]) -> None:
        try:
            payload = json.dumps(session, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to serialize session: {e}", key=self.session_key) from e
        self._storage.set_item(self.session_key, payload)

    def _notify(self, event: AuthChangeEvent, session: dict[str, Any] | None) -> None:
        if self._registration is None:
            return
        try:
            self._registration.callback(event, copy.deepcopy(session))
        except Exception:
            logger.exception(f"Auth listener failed on {event.value}", extra={"event": event.value})

    def _clear_listener(self, registration: AuthSubscription) -> None:
        if self._registration is registration:
            self._registration = None

    def _start_session(self, user: dict[str, Any]) -> dict[str, Any]:
        session = {
            "access_token": f"local-token-{uuid.uuid4().hex}",
            "token_type": "bearer",
            "user": copy.deepcopy(user),
        }
        self._write_session(session)
        self._notify(AuthChangeEvent.SIGNED_IN, session)
        return session

    # Profiles

    def _find_profile(self, email: str) -> dict[str, Any] | None:
        query = self._table(PROFILES_TABLE).select("*").eq("email", email).maybe_single()
        return _checked(query.execute()).data

    def _get_profile(self, user_id: str) -> dict[str, Any] | None:
        query = self._table(PROFILES_TABLE).select("*").eq("id", user_id).maybe_single()
        return _checked(query.execute()).data

    def _create_account(
        self,
        email: str,
        role: str = "user",
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        profile: dict[str, Any] = {
            "id": _new_id("user"),
            "email": email,
            "role": role,
            "balance": 0,
            "is_active": True,
            "created_at": now_iso(),
        }
        if metadata is not None:
            profile["metadata"] = metadata

        created = _checked(self._table(PROFILES_TABLE).insert(profile).execute())

        user_role = {
            "id": _new_id("role"),
            "user_id": profile["id"],
            "role": role,
            "created_at": now_iso(),
        }
        _checked(self._table(USER_ROLES_TABLE).insert(user_role).execute())
        return created.data

    # Public API

    @_enveloped
    def get_session(self) -> APIResponse:
        """Read the current session. data: {"session": session or None}."""
        return APIResponse(data={"session": self._read_session()})

    @_enveloped
    def get_user(self) -> APIResponse:
        """Read the signed-in user. data: {"user": user or None}."""
        session = self._read_session()
        return APIResponse(data={"user": session["user"] if session else None})

    @_enveloped
    def sign_in_with_password(self, email: str, password: str | None = None) -> APIResponse:
        """Sign in as the profile with this email; the password is ignored.

        Returns:
            APIResponse with data {"user", "session"}, or an AuthError
            "Invalid login credentials" if no profile has this email
        """
        profile = self._find_profile(email)
        if profile is None:
            raise AuthError("Invalid login credentials")

        session = self._start_session(profile)
        logger.info("User signed in", extra={"user_id": profile["id"]})
        return APIResponse(data={"user": copy.deepcopy(session["user"]), "session": session})

    @_enveloped
    def sign_up(self, email: str, password: str | None = None) -> APIResponse:
        """Create a user account and sign in as it.

        The account gets role "user", balance 0 and a matching user_roles row.

        Returns:
            APIResponse with data {"user", "session"}, or a ConflictError
            "User already registered" if the email is taken
        """
        if self._find_profile(email) is not None:
            raise ConflictError("User already registered", details={"email": email})

        profile = self._create_account(email)
        session = self._start_session(profile)
        logger.info("User signed up", extra={"user_id": profile["id"]})
        return APIResponse(data={"user": profile, "session": session})

    @_enveloped
    def sign_out(self) -> APIResponse:
        """Clear the session. Always succeeds."""
        self._storage.remove_item(self.session_key)
        self._notify(AuthChangeEvent.SIGNED_OUT, None)
        logger.info("User signed out")
        return APIResponse(data=None)

    @_enveloped
    def update_user(self, attributes: dict[str, Any] | None = None) -> APIResponse:
        """Update the signed-in user.

        Args:
            attributes: Optional keys "email", "password" (accepted but never
                stored) and "data" (merged into the profile's metadata)

        Returns:
            APIResponse with data {"user": profile}
        """
        attributes = attributes or {}
        session = self._read_session()
        if session is None:
            raise AuthError("Not logged in", status=401)

        user_id = session["user"].get("id")
        profile = self._get_profile(user_id)
        if profile is None:
            raise NotFoundError("User not found", "profile", user_id)

        patch: dict[str, Any] = {}
        if attributes.get("email"):
            patch["email"] = attributes["email"]
        if attributes.get("data"):
            metadata = profile.get("metadata") if isinstance(profile.get("metadata"), dict) else {}
            patch["metadata"] = {**metadata, **attributes["data"]}

        _checked(self._table(PROFILES_TABLE).update(patch).eq("id", user_id).execute())

        updated = self._get_profile(user_id) or {**profile, **patch}
        new_session = {**session, "user": updated}
        self._write_session(new_session)
        self._notify(AuthChangeEvent.USER_UPDATED, new_session)
        logger.info("User updated", extra={"user_id": user_id, "fields": sorted(patch)})
        return APIResponse(data={"user": copy.deepcopy(updated)})

    def on_auth_state_change(self, callback: AuthListener) -> AuthSubscription:
        """Register the auth state listener, replacing any previous one.

        The callback receives (event, session); session is None on sign-out.
        """
        self._registration = AuthSubscription(self, callback)
        return self._registration

    def refresh_session_user(self, profile: dict[str, Any]) -> bool:
        """Replace the session's embedded user if it is this profile.

        Notifies USER_UPDATED when the session changed.

        Returns:
            True if the session belonged to the profile and was refreshed
        """
        session = self._read_session()
        if session is None or session["user"].get("id") != profile.get("id"):
            return False
        new_session = {**session, "user": copy.deepcopy(profile)}
        self._write_session(new_session)
        self._notify(AuthChangeEvent.USER_UPDATED, new_session)
        return True

