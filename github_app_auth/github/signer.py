from __future__ import annotations

import time
from collections.abc import Callable

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from github_app_auth.config import MAX_JWT_TTL, Settings
from github_app_auth.errors import InvalidKeyError
from github_app_auth.models import Authentication, SignedAssertion

# Key type each JWS algorithm family needs
_KEY_TYPES: dict[str, type] = {
    "RS256": rsa.RSAPrivateKey,
    "RS384": rsa.RSAPrivateKey,
    "RS512": rsa.RSAPrivateKey,
    "PS256": rsa.RSAPrivateKey,
    "PS384": rsa.RSAPrivateKey,
    "PS512": rsa.RSAPrivateKey,
    "ES256": ec.EllipticCurvePrivateKey,
    "ES384": ec.EllipticCurvePrivateKey,
    "ES512": ec.EllipticCurvePrivateKey,
}


class AssertionSigner:
    """Builds the short-lived app JWT that authenticates a token exchange.

    ``iat`` is backdated by ``clock_skew`` seconds so a GitHub clock running
    slightly behind ours still accepts it, and ``exp`` sits ``ttl`` seconds
    after ``iat``.
    """

    def __init__(
        self,
        algorithm: str = "RS256",
        clock_skew: int = 60,
        ttl: int = MAX_JWT_TTL,
        clock: Callable[[], float] = time.time,
    ):
        if algorithm not in _KEY_TYPES:
            raise ValueError(f"Unsupported JWT algorithm: {algorithm!r}")
        if not 0 < ttl <= MAX_JWT_TTL:
            raise ValueError(f"JWT ttl must be in (0, {MAX_JWT_TTL}] seconds, got {ttl}")
        self.algorithm = algorithm
        self.clock_skew = clock_skew
        self.ttl = ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, s: Settings) -> AssertionSigner:
        return cls(algorithm=s.jwt_algorithm, clock_skew=s.jwt_clock_skew, ttl=s.jwt_ttl)

    def _load_key(self, auth: Authentication):
        try:
            key = serialization.load_pem_private_key(auth.private_key.encode(), password=None)
        except (ValueError, TypeError) as exc:
            # cryptography raises ValueError for garbage and TypeError for encrypted keys
            raise InvalidKeyError(auth.app_id, "private key is not a valid unencrypted PEM key") from exc
        except UnsupportedAlgorithm as exc:
            raise InvalidKeyError(auth.app_id, str(exc)) from exc

        expected = _KEY_TYPES[self.algorithm]
        if not isinstance(key, expected):
            raise InvalidKeyError(
                auth.app_id,
                f"{type(key).__name__} cannot sign {self.algorithm}",
            )
        return key

    def sign(self, auth: Authentication) -> SignedAssertion:
        key = self._load_key(auth)
        issued_at = int(self._clock()) - self.clock_skew
        expires_at = issued_at + self.ttl
        payload = {
            "iat": issued_at,
            "exp": expires_at,
            "iss": str(auth.app_id),
        }
        try:
            encoded = jwt.encode(payload, key, algorithm=self.algorithm)
        except (ValueError, TypeError, jwt.PyJWTError) as exc:
            raise InvalidKeyError(auth.app_id, f"signing with {self.algorithm} failed: {exc}") from exc
        return SignedAssertion(jwt=encoded, issuer=str(auth.app_id), issued_at=issued_at, expires_at=expires_at)
