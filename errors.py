# errors.py
"""
Error taxonomy shared by the gateway, the identity session and the vision client.

Each class carries the HTTP status the JSON API answers with; the handlers in
app.py turn them into ``{"ok": False, "error": ...}`` bodies.
"""


class WasteTrackError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class AuthError(WasteTrackError):
    """Identity provider init / login / logout failure."""
    status_code = 401


class VerificationError(WasteTrackError):
    """Network failure or malformed answer from the vision model."""
    status_code = 422


class VerificationBusy(VerificationError):
    """A verification for this user is already in flight."""
    status_code = 409


class PersistenceError(WasteTrackError):
    status_code = 500


class PlacesError(WasteTrackError):
    status_code = 502


class InvalidField(WasteTrackError):
    """A request field has the wrong JSON type."""
    status_code = 400
