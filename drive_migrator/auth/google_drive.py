"""Google Drive OAuth2 authentication for the source and destination accounts."""

import logging
from pathlib import Path
from typing import Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

logger = logging.getLogger(__name__)

# Copying into the destination and tagging copies needs full Drive access.
SCOPES = ["https://www.googleapis.com/auth/drive"]


class GoogleDriveAuthProvider:
    """OAuth2 provider for one Google account.

    Each account keeps its own token file, so the source and destination
    can be different Google users. ``authenticate`` tries the cached token
    first, then a refresh, and only then opens the browser consent screen.
    """

    def __init__(
        self,
        credentials_path: Path,
        token_path: Path,
        account: str = "source",
    ) -> None:
        self._credentials_path = credentials_path
        self._token_path = token_path
        self._account = account
        self._credentials: Optional[Credentials] = None

    @property
    def account(self) -> str:
        return self._account

    def authenticate(self) -> bool:
        try:
            if self.load_token() and self._use_cached_token():
                return True
            return self._run_oauth_flow()
        except Exception as e:
            logger.error("Authentication of the %s account failed: %s", self._account, e)
            return False

    def _use_cached_token(self) -> bool:
        if self.is_authenticated():
            logger.info("Reusing cached %s token", self._account)
            return True
        return self.refresh_if_needed()

    def get_credentials(self) -> Optional[Credentials]:
        return self._credentials

    def is_authenticated(self) -> bool:
        return self._credentials is not None and self._credentials.valid

    def refresh_if_needed(self) -> bool:
        """Refresh an expired token; True when usable credentials are held."""
        creds = self._credentials
        if creds is None:
            return False
        if creds.valid:
            return True
        if not (creds.expired and creds.refresh_token):
            return False

        try:
            creds.refresh(Request())
        except Exception as e:
            logger.warning("Could not refresh the %s token: %s", self._account, e)
            return False

        self.save_token()
        logger.info("Refreshed %s token", self._account)
        return True

    def save_token(self) -> None:
        if self._credentials is None:
            return
        self._token_path.parent.mkdir(parents=True, exist_ok=True)
        self._token_path.write_text(self._credentials.to_json())
        logger.debug("Wrote %s token to %s", self._account, self._token_path)

    def load_token(self) -> bool:
        if not self._token_path.exists():
            return False
        try:
            self._credentials = Credentials.from_authorized_user_file(
                str(self._token_path), SCOPES
            )
        except (ValueError, KeyError) as e:
            # JSONDecodeError is a ValueError.
            logger.warning(
                "Ignoring unreadable %s token %s: %s",
                self._account,
                self._token_path,
                e,
            )
            self._credentials = None
            return False
        return True

    def clear_token(self) -> None:
        """Forget the cached token so the next login can pick another account."""
        self._credentials = None
        if self._token_path.exists():
            self._token_path.unlink()
            logger.info("Removed %s token %s", self._account, self._token_path)

    def _run_oauth_flow(self) -> bool:
        if not self._credentials_path.exists():
            logger.error("OAuth client file not found: %s", self._credentials_path)
            return False

        try:
            flow = InstalledAppFlow.from_client_secrets_file(
                str(self._credentials_path), SCOPES
            )
            # Always show the account chooser: source and destination differ.
            self._credentials = flow.run_local_server(port=0, prompt="select_account")
        except Exception as e:
            logger.error("OAuth flow for the %s account failed: %s", self._account, e)
            return False

        self.save_token()
        logger.info("Authenticated %s account", self._account)
        return True
