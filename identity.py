# identity.py
"""
Login session with an explicit lifecycle.

``IdentitySession`` wraps a provider object exposing ``init()``,
``connect(**credentials) -> dict``, ``get_user_info() -> dict`` and
``logout()``. The app builds one per request from the factory registered in
``app.extensions["identity_provider"]``, so tests and deployments can swap in
a different provider without touching module state.
"""
import logging

from errors import AuthError
from models import User

logger = logging.getLogger("wastetrack.identity")


class LocalAccountProvider:
    """Email + password accounts stored in the users table."""

    def __init__(self):
        self._user = None

    def init(self) -> None:
        self._user = None

    def connect(self, email: str = "", password: str = "", **_) -> dict:
        email = (email or "").strip().lower()
        user = User.query.filter_by(email=email).first()
        if not user or not user.check_password(password or ""):
            raise AuthError("Invalid credentials")
        self._user = user
        return self.get_user_info()

    def get_user_info(self) -> dict:
        if self._user is None:
            return {}
        return {"email": self._user.email, "name": self._user.name}

    def logout(self) -> None:
        self._user = None


class IdentitySession:
    def __init__(self, provider):
        self.provider = provider
        self._initialized = False
        self._connected = False
        self._user_info: dict | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    def init(self) -> "IdentitySession":
        try:
            self.provider.init()
        except AuthError:
            raise
        except Exception as e:
            logger.error("Error initializing identity provider: %s", e)
            raise AuthError(f"Error initializing identity provider: {e}") from e
        self._initialized = True
        return self

    def connect(self, **credentials) -> dict:
        if not self._initialized:
            raise AuthError("Identity provider not initialized")
        try:
            info = self.provider.connect(**credentials)
        except AuthError:
            logger.info("login rejected for %s", credentials.get("email"))
            raise
        except Exception as e:
            logger.error("Login failed: %s", e)
            raise AuthError(f"Login failed: {e}") from e
        if not info or not info.get("email"):
            raise AuthError("Connection failed - no user identity returned")
        self._connected = True
        self._user_info = dict(info)
        return self.get_user_info()

    def get_user_info(self) -> dict:
        if not self._connected:
            raise AuthError("Not connected. Please login first.")
        return {"email": self._user_info.get("email"), "name": self._user_info.get("name")}

    def logout(self) -> None:
        if not self._initialized:
            raise AuthError("Identity provider not initialized")
        try:
            self.provider.logout()
        except Exception as e:
            logger.error("Logout failed: %s", e)
            raise AuthError(f"Logout failed: {e}") from e
        finally:
            self._connected = False
            self._user_info = None

    def dispose(self) -> None:
        self._connected = False
        self._user_info = None
        self._initialized = False

    def __enter__(self):
        return self.init()

    def __exit__(self, *exc):
        self.dispose()
        return False
