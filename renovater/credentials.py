"""Read the GitHub App identity from the Pipelines as Code secret."""

from __future__ import annotations

import re
import typing as typ

from renovater.models import AppCredentials

if typ.TYPE_CHECKING:
    import collections.abc as cabc

GITHUB_APP_ID_KEY = "github-application-id"
GITHUB_PRIVATE_KEY_KEY = "github-private-key"

# Optional sign and decimal digits only; no whitespace or digit separators.
_APP_ID_PATTERN = re.compile(r"[+-]?[0-9]+")


class AppCredentialsError(ValueError):
    """Raised when the secret names a GitHub App that cannot be used."""

    @classmethod
    def invalid_app_id(cls, raw: str | bytes) -> AppCredentialsError:
        """Return an error for a non-integer application id."""
        return cls(f"{GITHUB_APP_ID_KEY} must be an integer, got: {raw!r}")


def is_github_app_configured(data: cabc.Mapping[str, bytes]) -> bool:
    """Return True when the secret carries GitHub App settings.

    Either the application id or the private key being present marks the App
    as in use; :func:`load_app_credentials` then reports an incomplete pair.
    """
    return bool(data.get(GITHUB_APP_ID_KEY)) or bool(data.get(GITHUB_PRIVATE_KEY_KEY))


def load_app_credentials(data: cabc.Mapping[str, bytes]) -> AppCredentials:
    """Build :class:`AppCredentials` from decoded secret data.

    Raises
    ------
    AppCredentialsError
        If the application id is not a plain UTF-8 decimal integer.

    """
    raw = data.get(GITHUB_APP_ID_KEY, b"")
    try:
        raw_id = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise AppCredentialsError.invalid_app_id(raw) from exc
    if not _APP_ID_PATTERN.fullmatch(raw_id):
        raise AppCredentialsError.invalid_app_id(raw_id)
    app_id = int(raw_id)
    return AppCredentials(
        app_id=app_id, private_key=bytes(data.get(GITHUB_PRIVATE_KEY_KEY, b""))
    )
