# blogmedia/services/credentials/providers.py
from __future__ import annotations

"""
🔐 Blog Media • Credential providers
====================================

One class per authentication strategy, all behind the same contract:

    await provider.resolve() -> ResolvedCredential

Strategy selection is a pure function of the *explicit* `aws_auth_strategy`
setting (`build_provider`); nothing is inferred from which fields happen to
be filled in.

Failure contract
----------------
- `ConfigurationIncomplete`: required parameters missing (checked before any
  network call, never a partially-populated credential).
- `SessionExpired`: the upstream session needs an operator to
  re-authenticate out-of-band.
- `EnvironmentMismatch`: web identity used outside a platform that
  provides a workload token.
- `UpstreamAuthError`: STS/SSO call failed; eligible for the next
  scheduled refresh.

boto3 calls are blocking and run in a worker thread (`asyncio.to_thread`).
"""

import asyncio
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Type

import boto3
from botocore import UNSIGNED
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from jose import JWTError, jwt
from pydantic import ValidationError

from blogmedia.core.config import settings
from blogmedia.core.exceptions import (
    ConfigurationIncomplete,
    EnvironmentMismatch,
    SessionExpired,
    UpstreamAuthError,
)
from blogmedia.schemas.credentials import (
    CredentialConfig,
    IdentityCenterSSOParams,
    LongLivedRefreshParams,
    ResolvedCredential,
    RoleAssumptionParams,
    StaticTemporaryParams,
    WebIdentityParams,
    utcnow,
)
from blogmedia.schemas.enums import CredentialStrategy

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., Any]

STATIC_DEFAULT_LIFETIME = timedelta(hours=12)
LONG_LIVED_LIFETIME = timedelta(minutes=30)
WEB_IDENTITY_ROTATION_MARGIN = timedelta(minutes=5)
DEFAULT_WEB_IDENTITY_TOKEN_FILE = "/var/run/secrets/eks.amazonaws.com/serviceaccount/token"

# STS error codes meaning "the base credential itself is no longer valid"
_BASE_CREDENTIAL_EXPIRED = {"ExpiredToken", "InvalidClientTokenId", "TokenRefreshRequired", "ExpiredTokenException"}
_SSO_SESSION_EXPIRED = {"UnauthorizedException", "InvalidGrantException", "ExpiredTokenException", "ForbiddenException"}

_BOTO_CFG = BotoConfig(
    retries={"max_attempts": 3, "mode": "standard"},
    connect_timeout=3,
    read_timeout=10,
)


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code") or "")


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept datetimes, epoch millis and the ISO variants the AWS CLI writes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    s = str(value).strip().replace("UTC", "").strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    parsed = datetime.fromisoformat(s)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# 🧱 Base provider
# ─────────────────────────────────────────────────────────────────────────────
class CredentialProvider:
    """
    Base class. Subclasses set `strategy` / `params_model` and implement
    `_resolve_blocking(params)` (runs in a thread) or override `resolve()`.
    """

    strategy: ClassVar[CredentialStrategy]
    params_model: ClassVar[Type[Any]]

    def __init__(
        self,
        config: CredentialConfig,
        *,
        store: Any = None,
        client_factory: Optional[ClientFactory] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.store = store
        self._client_factory = client_factory or boto3.client
        self._clock = clock

    @property
    def region(self) -> str:
        return self.config.location.region or settings.AWS_DEFAULT_REGION

    def validated_params(self) -> Any:
        """Parse and completeness-check the strategy blob."""
        try:
            params = self.config.params_for(self.params_model)
        except ValidationError as e:
            bad = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            raise ConfigurationIncomplete(
                self.strategy.value,
                missing=bad,
                message=f"Storage configuration for '{self.strategy.value}' has invalid values",
                remediation=f"Fix the {self.strategy.value} settings: invalid {', '.join(bad)}",
            ) from e
        missing = params.missing_fields()
        if missing:
            raise ConfigurationIncomplete(self.strategy.value, missing=missing)
        return params

    async def resolve(self) -> ResolvedCredential:
        params = self.validated_params()
        return await asyncio.to_thread(self._resolve_blocking, params)

    def _resolve_blocking(self, params: Any) -> ResolvedCredential:  # pragma: no cover
        raise NotImplementedError

    def _client(self, service: str, **kwargs: Any) -> Any:
        kwargs.setdefault("config", _BOTO_CFG)
        return self._client_factory(service, **kwargs)

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(region={self.region})"


# ─────────────────────────────────────────────────────────────────────────────
# 1) Static temporary keys
# ─────────────────────────────────────────────────────────────────────────────
class StaticTemporaryProvider(CredentialProvider):
    """Already-issued temporary keys, reported with a declared (or 12h) expiry."""

    strategy = CredentialStrategy.STATIC_TEMPORARY
    params_model = StaticTemporaryParams

    async def resolve(self) -> ResolvedCredential:
        params: StaticTemporaryParams = self.validated_params()
        now = self._clock()
        expires_at = _parse_timestamp(params.expires_at)
        if expires_at is None:
            expires_at = (_parse_timestamp(params.issued_at) or now) + STATIC_DEFAULT_LIFETIME
        if expires_at <= now:
            raise SessionExpired(
                f"Static temporary credentials expired at {expires_at.isoformat()}",
                remediation="Paste a fresh set of temporary keys into the storage settings",
            )
        return ResolvedCredential(
            access_key_id=params.access_key_id,
            secret_access_key=params.secret_access_key,
            session_token=params.session_token,
            expires_at=expires_at,
            strategy=self.strategy,
            resolved_at=now,
        )


# ─────────────────────────────────────────────────────────────────────────────
# 2) IAM Identity Center (SSO)
# ─────────────────────────────────────────────────────────────────────────────
class IdentityCenterSSOProvider(CredentialProvider):
    """
    Exchange the AWS CLI's cached SSO access token for role credentials.

    The token is looked up in the SSO cache directory by `startUrl`. An expired
    token is refreshed through SSO-OIDC when the cache entry carries a
    refresh token and client registration; otherwise the operator must run
    `aws sso login` again.
    """

    strategy = CredentialStrategy.IDENTITY_CENTER_SSO
    params_model = IdentityCenterSSOParams

    def _login_hint(self, params: IdentityCenterSSOParams) -> str:
        if params.sso_session:
            return f'Run "aws sso login --sso-session {params.sso_session}" and retry'
        return f'Run "aws sso login" for {params.start_url} and retry'

    def _cache_dir(self, params: IdentityCenterSSOParams) -> Path:
        return Path(params.cache_dir).expanduser() if params.cache_dir else settings.sso_cache_dir

    def _read_cached_token(self, params: IdentityCenterSSOParams) -> Tuple[Path, Dict[str, Any]]:
        cache_dir = self._cache_dir(params)
        if cache_dir.is_dir():
            for path in sorted(cache_dir.glob("*.json")):
                try:
                    data = json.loads(path.read_text(encoding="utf-8"))
                except (OSError, ValueError):
                    continue
                if isinstance(data, dict) and data.get("startUrl") == params.start_url and data.get("accessToken"):
                    return path, data
        raise SessionExpired(
            "No cached SSO session found for the configured start URL",
            remediation=self._login_hint(params),
        )

    def _refresh_token(self, path: Path, entry: Dict[str, Any], params: IdentityCenterSSOParams) -> Dict[str, Any]:
        if not (entry.get("refreshToken") and entry.get("clientId") and entry.get("clientSecret")):
            raise SessionExpired("SSO session expired", remediation=self._login_hint(params))
        oidc = self._client("sso-oidc", region_name=entry.get("region") or params.sso_region)
        try:
            resp = oidc.create_token(
                clientId=entry["clientId"],
                clientSecret=entry["clientSecret"],
                grantType="refresh_token",
                refreshToken=entry["refreshToken"],
            )
        except ClientError as e:
            if _error_code(e) in _SSO_SESSION_EXPIRED:
                raise SessionExpired("SSO session expired", remediation=self._login_hint(params)) from e
            raise UpstreamAuthError(f"SSO token refresh failed: {_error_code(e)}") from e
        except BotoCoreError as e:
            raise UpstreamAuthError(f"SSO token refresh failed: {e}") from e

        updated = dict(entry)
        updated["accessToken"] = resp["accessToken"]
        updated["expiresAt"] = (self._clock() + timedelta(seconds=int(resp.get("expiresIn", 3600)))).strftime(
            "%Y-%m-%dT%H:%M:%SZ"
        )
        if resp.get("refreshToken"):
            updated["refreshToken"] = resp["refreshToken"]
        try:
            path.write_text(json.dumps(updated), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write refreshed SSO token back to %s: %s", path, e)
        logger.info("Refreshed SSO access token for %s", params.start_url)
        return updated

    def _resolve_blocking(self, params: IdentityCenterSSOParams) -> ResolvedCredential:
        path, entry = self._read_cached_token(params)
        token_expiry = _parse_timestamp(entry.get("expiresAt"))
        if token_expiry is not None and token_expiry <= self._clock():
            entry = self._refresh_token(path, entry, params)

        sso = self._client("sso", region_name=params.sso_region)
        try:
            resp = sso.get_role_credentials(
                roleName=params.role_name,
                accountId=params.account_id,
                accessToken=entry["accessToken"],
            )
        except ClientError as e:
            code = _error_code(e)
            if code in _SSO_SESSION_EXPIRED:
                raise SessionExpired(
                    "Identity Center session expired or was revoked",
                    remediation=self._login_hint(params),
                ) from e
            raise UpstreamAuthError(
                f"GetRoleCredentials failed: {code or e}",
                remediation=f"Check that {params.role_name} is assigned in account {params.account_id}",
            ) from e
        except BotoCoreError as e:
            raise UpstreamAuthError(f"SSO endpoint unreachable: {e}") from e

        rc = resp["roleCredentials"]
        return ResolvedCredential(
            access_key_id=rc["accessKeyId"],
            secret_access_key=rc["secretAccessKey"],
            session_token=rc.get("sessionToken"),
            expires_at=_parse_timestamp(rc.get("expiration")),
            strategy=self.strategy,
            resolved_at=self._clock(),
        )


# ─────────────────────────────────────────────────────────────────────────────
# 3) Cross-account role assumption
# ─────────────────────────────────────────────────────────────────────────────
class RoleAssumptionProvider(CredentialProvider):
    """
    `sts:AssumeRole` with a base key pair. The first resolution after
    construction reuses a persisted, still-fresh result for the same role;
    every later resolution performs a new assumption and persists it.
    """

    strategy = CredentialStrategy.ROLE_ASSUMPTION
    params_model = RoleAssumptionParams

    def __init__(self, *args: Any, reuse_margin: Optional[timedelta] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._reuse_margin = reuse_margin or timedelta(minutes=settings.CREDENTIAL_EAGER_REFRESH_MINUTES)
        self._cache_consulted = False

    async def resolve(self) -> ResolvedCredential:
        params: RoleAssumptionParams = self.validated_params()

        if not self._cache_consulted:
            self._cache_consulted = True
            cached = await self._load_cached(params)
            if cached is not None:
                logger.info("Reusing persisted role credential %s for %s", cached.key_hint, params.role_arn)
                return cached

        credential = await asyncio.to_thread(self._assume, params)
        if self.store is not None:
            await self.store.save_resolved(credential, roleArn=params.role_arn)
        return credential

    async def _load_cached(self, params: RoleAssumptionParams) -> Optional[ResolvedCredential]:
        if self.store is None:
            return None
        data = await self.store.load_resolved()
        if not data or data.get("roleArn") != params.role_arn or data.get("strategy") != self.strategy.value:
            return None
        try:
            cached = ResolvedCredential.from_cache(data)
        except (KeyError, ValueError) as e:
            logger.warning("Ignoring unreadable persisted credential: %s", e)
            return None
        if cached.is_expired(self._clock(), margin=self._reuse_margin):
            return None
        return cached

    def _assume(self, params: RoleAssumptionParams) -> ResolvedCredential:
        sts = self._client(
            "sts",
            region_name=self.region,
            aws_access_key_id=params.access_key_id,
            aws_secret_access_key=params.secret_access_key,
            aws_session_token=params.session_token,
        )
        request: Dict[str, Any] = {
            "RoleArn": params.role_arn,
            "RoleSessionName": params.session_name,
            "DurationSeconds": params.duration_seconds,
        }
        if params.external_id:
            request["ExternalId"] = params.external_id

        try:
            resp = sts.assume_role(**request)
        except ClientError as e:
            code = _error_code(e)
            if code in _BASE_CREDENTIAL_EXPIRED:
                raise SessionExpired(
                    f"Base credentials for role assumption are no longer valid ({code})",
                    remediation="Refresh the base access key pair in the storage settings",
                ) from e
            raise UpstreamAuthError(
                f"AssumeRole failed for {params.role_arn}: {code or e}",
                remediation="Check role ARN and trust policy (and the external ID, if one is required)",
            ) from e
        except BotoCoreError as e:
            raise UpstreamAuthError(f"STS unreachable: {e}") from e

        creds = resp["Credentials"]
        logger.info("Assumed role %s (session %s)", params.role_arn, params.session_name)
        return ResolvedCredential(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds.get("SessionToken"),
            expires_at=_parse_timestamp(creds.get("Expiration")),
            strategy=self.strategy,
            resolved_at=self._clock(),
        )


# ─────────────────────────────────────────────────────────────────────────────
# 4) Workload identity (OIDC web identity)
# ─────────────────────────────────────────────────────────────────────────────
class WebIdentityProvider(CredentialProvider):
    """
    Exchange the platform-issued identity token for role credentials.

    Reported as non-expiring (`expires_at=None`); `rotate_after` keeps the
    manager from serving the STS session past its real lifetime.
    """

    strategy = CredentialStrategy.WEB_IDENTITY
    params_model = WebIdentityParams

    def _token_path(self, params: WebIdentityParams) -> str:
        return (
            params.token_file
            or settings.AWS_WEB_IDENTITY_TOKEN_FILE
            or os.getenv("AWS_WEB_IDENTITY_TOKEN_FILE")
            or DEFAULT_WEB_IDENTITY_TOKEN_FILE
        )

    def _read_token(self, params: WebIdentityParams) -> str:
        path = self._token_path(params)
        try:
            token = Path(path).read_text(encoding="utf-8").strip()
        except OSError as e:
            raise EnvironmentMismatch(
                f"Web identity token not readable at {path}",
                remediation="This strategy only works on a platform that mounts a workload identity token "
                "(e.g. EKS IRSA); choose another strategy here",
            ) from e
        if not token:
            raise EnvironmentMismatch(f"Web identity token file {path} is empty")
        return token

    def _check_claims(self, token: str, params: WebIdentityParams) -> None:
        if not (params.issuer or params.subject or params.audience):
            return
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError as e:
            raise EnvironmentMismatch("Web identity token is not a JWT") from e
        aud = claims.get("aud")
        audiences = aud if isinstance(aud, list) else [aud]
        mismatches = []
        if params.issuer and claims.get("iss") != params.issuer:
            mismatches.append("issuer")
        if params.subject and claims.get("sub") != params.subject:
            mismatches.append("subject")
        if params.audience and params.audience not in audiences:
            mismatches.append("audience")
        if mismatches:
            raise EnvironmentMismatch(
                f"Web identity token does not match the configured {', '.join(mismatches)}",
                remediation="Run on the platform that issues tokens for this identity, or update the OIDC settings",
            )

    def _resolve_blocking(self, params: WebIdentityParams) -> ResolvedCredential:
        token = self._read_token(params)
        self._check_claims(token, params)

        sts = self._client(
            "sts",
            region_name=self.region,
            config=BotoConfig(signature_version=UNSIGNED, retries={"max_attempts": 3, "mode": "standard"}),
        )
        try:
            resp = sts.assume_role_with_web_identity(
                RoleArn=params.role_arn,
                RoleSessionName=params.session_name,
                WebIdentityToken=token,
                DurationSeconds=params.duration_seconds,
            )
        except ClientError as e:
            code = _error_code(e)
            raise UpstreamAuthError(
                f"AssumeRoleWithWebIdentity failed for {params.role_arn}: {code or e}",
                remediation="Check role ARN and trust policy (OIDC provider and audience)",
            ) from e
        except BotoCoreError as e:
            raise UpstreamAuthError(f"STS unreachable: {e}") from e

        creds = resp["Credentials"]
        session_expiry = _parse_timestamp(creds.get("Expiration"))
        return ResolvedCredential(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds.get("SessionToken"),
            expires_at=None,
            strategy=self.strategy,
            resolved_at=self._clock(),
            rotate_after=(session_expiry - WEB_IDENTITY_ROTATION_MARGIN) if session_expiry else None,
        )


# ─────────────────────────────────────────────────────────────────────────────
# 5) Long-lived keys with a forced refresh cadence
# ─────────────────────────────────────────────────────────────────────────────
class LongLivedRefreshProvider(CredentialProvider):
    """Static keys reported with a 30-minute expiry so config edits are re-read promptly."""

    strategy = CredentialStrategy.LONG_LIVED_REFRESH
    params_model = LongLivedRefreshParams

    async def resolve(self) -> ResolvedCredential:
        params: LongLivedRefreshParams = self.validated_params()
        now = self._clock()
        return ResolvedCredential(
            access_key_id=params.access_key_id,
            secret_access_key=params.secret_access_key,
            expires_at=now + LONG_LIVED_LIFETIME,
            strategy=self.strategy,
            resolved_at=now,
        )


# ─────────────────────────────────────────────────────────────────────────────
# 🏭 Selection
# ─────────────────────────────────────────────────────────────────────────────
PROVIDERS: Dict[CredentialStrategy, Type[CredentialProvider]] = {
    cls.strategy: cls
    for cls in (
        StaticTemporaryProvider,
        IdentityCenterSSOProvider,
        RoleAssumptionProvider,
        WebIdentityProvider,
        LongLivedRefreshProvider,
    )
}


def build_provider(config: CredentialConfig, **kwargs: Any) -> CredentialProvider:
    """
    Construct the provider for `config.strategy`.

    Raises
    ------
    ConfigurationIncomplete
        Cloud storage disabled, no strategy selected, or region/bucket missing.
    """
    if (config.storage_type or "").lower() != "aws":
        raise ConfigurationIncomplete(
            None,
            message="Cloud media storage is not enabled",
            remediation='Set the media storage type to "aws" in the storage settings',
        )
    if config.strategy is None:
        raise ConfigurationIncomplete(None)
    missing = config.location.missing_fields()
    if missing:
        raise ConfigurationIncomplete(
            config.strategy.value,
            missing=missing,
            remediation=f"Set {', '.join(missing)} in the storage settings",
        )
    return PROVIDERS[config.strategy](config, **kwargs)


__all__ = [
    "CredentialProvider",
    "StaticTemporaryProvider",
    "IdentityCenterSSOProvider",
    "RoleAssumptionProvider",
    "WebIdentityProvider",
    "LongLivedRefreshProvider",
    "PROVIDERS",
    "build_provider",
]
