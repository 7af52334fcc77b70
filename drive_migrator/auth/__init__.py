from .google_drive import SCOPES, GoogleDriveAuthProvider

__all__ = [
    "SCOPES",
    "GoogleDriveAuthProvider",
]
