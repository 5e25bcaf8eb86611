"""
Credential resolver: loads provider credentials from settings and reports configured/unconfigured per provider.

Never raises on missing credentials. A provider without usable credentials is reported unconfigured
(with a logged reason) so dispatch can skip it. Results are cached for the resolver's lifetime;
construct one resolver at start-up and share it (read-only after resolution).
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from marketplace_push.config import Settings
from marketplace_push.core.constants import GOOGLE_TOKEN_URI
from marketplace_push.core.errors import UnconfiguredProviderError
from marketplace_push.services.push.types import Provider

logger = logging.getLogger(__name__)

# Placeholder values shipped in sample env files; treated as missing.
_PLACEHOLDERS = frozenset({"your-onesignal-app-id", "your-rest-api-key", "changeme"})


@dataclass(frozen=True)
class FcmCredentials:
    project_id: str
    client_email: str
    private_key: str
    token_uri: str = GOOGLE_TOKEN_URI


@dataclass(frozen=True)
class OneSignalCredentials:
    app_id: str
    rest_api_key: str


@dataclass(frozen=True)
class VapidCredentials:
    private_key: str
    subject: str
    public_key: str = ""


@dataclass(frozen=True)
class CredentialState:
    provider: Provider
    credentials: Any = None
    reason: str | None = None

    @property
    def configured(self) -> bool:
        return self.credentials is not None

    def require(self) -> Any:
        """Credentials, or UnconfiguredProviderError."""
        if self.credentials is None:
            raise UnconfiguredProviderError(self.provider.value, self.reason)
        return self.credentials


def _present(value: str | None) -> bool:
    return bool(value) and value not in _PLACEHOLDERS


class CredentialResolver:
    """Resolve provider credentials once from Settings; cache per provider."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._cache: dict[Provider, CredentialState] = {}

    def resolve(self, provider: Provider) -> CredentialState:
        provider = Provider(provider)
        state = self._cache.get(provider)
        if state is None:
            state = self._load(provider)
            self._cache[provider] = state
            if state.configured:
                logger.info("Push provider %s configured", provider.value)
            else:
                logger.warning("Push provider %s not configured: %s", provider.value, state.reason)
        return state

    def resolve_all(self) -> dict[Provider, CredentialState]:
        return {p: self.resolve(p) for p in Provider}

    def status(self) -> dict[str, dict[str, Any]]:
        """Diagnostics without secrets: {provider: {configured, reason}}."""
        return {
            p.value: {"configured": s.configured, "reason": s.reason}
            for p, s in self.resolve_all().items()
        }

    def _load(self, provider: Provider) -> CredentialState:
        if provider == Provider.FCM:
            return self._load_fcm()
        if provider == Provider.ONESIGNAL:
            return self._load_onesignal()
        return self._load_vapid()

    # --- FCM ---

    def _service_account_bundle(self) -> tuple[dict[str, Any] | None, str | None]:
        """Service-account JSON from FIREBASE_SERVICE_ACCOUNT_KEY, else FIREBASE_SERVICE_ACCOUNT_PATH. (bundle, error)."""
        s = self._settings
        if s.firebase_service_account_key:
            try:
                bundle = json.loads(s.firebase_service_account_key)
            except ValueError as e:
                return None, f"FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON: {e}"
            if not isinstance(bundle, dict):
                return None, "FIREBASE_SERVICE_ACCOUNT_KEY must be a JSON object"
            return bundle, None
        if s.firebase_service_account_path:
            path = Path(s.firebase_service_account_path)
            if not path.exists():
                return None, f"FIREBASE_SERVICE_ACCOUNT_PATH does not exist: {path}"
            try:
                bundle = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                return None, f"FIREBASE_SERVICE_ACCOUNT_PATH read failed: {e}"
            if not isinstance(bundle, dict):
                return None, "FIREBASE_SERVICE_ACCOUNT_PATH must hold a JSON object"
            return bundle, None
        return None, None

    def _load_fcm(self) -> CredentialState:
        s = self._settings
        bundle, error = self._service_account_bundle()
        if error:
            return CredentialState(Provider.FCM, reason=error)
        bundle = bundle or {}
        private_key = (bundle.get("private_key") or s.firebase_private_key or "").replace("\\n", "\n").strip()
        client_email = (bundle.get("client_email") or s.firebase_client_email or "").strip()
        project_id = (s.firebase_project_id or bundle.get("project_id") or "").strip()
        token_uri = (bundle.get("token_uri") or GOOGLE_TOKEN_URI).strip()
        missing = [
            name
            for name, value in (
                ("private_key", private_key),
                ("client_email", client_email),
                ("project_id", project_id),
            )
            if not _present(value)
        ]
        if missing:
            return CredentialState(Provider.FCM, reason=f"missing {', '.join(missing)}")
        return CredentialState(
            Provider.FCM,
            FcmCredentials(
                project_id=project_id,
                client_email=client_email,
                private_key=private_key,
                token_uri=token_uri,
            ),
        )

    # --- OneSignal ---

    def _load_onesignal(self) -> CredentialState:
        s = self._settings
        missing = [
            name
            for name, value in (
                ("ONESIGNAL_APP_ID", s.onesignal_app_id),
                ("ONESIGNAL_REST_API_KEY", s.onesignal_rest_api_key),
            )
            if not _present(value)
        ]
        if missing:
            return CredentialState(Provider.ONESIGNAL, reason=f"missing {', '.join(missing)}")
        return CredentialState(
            Provider.ONESIGNAL,
            OneSignalCredentials(app_id=s.onesignal_app_id, rest_api_key=s.onesignal_rest_api_key),
        )

    # --- Web Push (VAPID) ---

    def _load_vapid(self) -> CredentialState:
        s = self._settings
        missing = [
            name
            for name, value in (
                ("VAPID_PRIVATE_KEY", s.vapid_private_key),
                ("VAPID_SUBJECT", s.vapid_subject),
            )
            if not _present(value)
        ]
        if missing:
            return CredentialState(Provider.WEBPUSH, reason=f"missing {', '.join(missing)}")
        if not s.vapid_subject.startswith(("mailto:", "https:")):
            return CredentialState(Provider.WEBPUSH, reason="VAPID_SUBJECT must start with mailto: or https:")
        return CredentialState(
            Provider.WEBPUSH,
            VapidCredentials(
                private_key=s.vapid_private_key,
                subject=s.vapid_subject,
                public_key=s.vapid_public_key,
            ),
        )
