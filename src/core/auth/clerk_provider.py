import jwt
from clerk_backend_api import Clerk, authenticate_request
from clerk_backend_api.security.types import AuthenticateRequestOptions

from core.errors import AuthenticationError
from core.models.status import Role

from .interface import AuthProvider, AuthUser

# Custom session claim carrying the platform role, set in the Clerk session
# token template as {"role": "{{user.public_metadata.role}}"}.
ROLE_CLAIM = "role"


class _BearerRequest:
    """Minimal Requestish object for ``authenticate_request``."""

    def __init__(self, token: str):
        self.headers = {"Authorization": f"Bearer {token}"}


def _role_from(value: object) -> Role:
    """Map a role string such as "guide" onto Role; anything unknown is a traveler."""
    if isinstance(value, str):
        try:
            return Role(value.upper())
        except ValueError:
            pass
    return Role.TRAVELER


def _primary_email(user) -> str:
    addresses = user.email_addresses or []
    for address in addresses:
        if address.id == user.primary_email_address_id:
            return address.email_address
    return addresses[0].email_address if addresses else ""


class ClerkAuthProvider(AuthProvider):
    def __init__(self, secret_key: str):
        self._client = Clerk(bearer_auth=secret_key)
        self._secret_key = secret_key

    async def verify_token(self, token: str) -> AuthUser:
        """Verify a Clerk session token.

        When the token already carries the role claim the user is built from
        the claims alone; otherwise the profile is fetched from the Backend API.
        """
        try:
            request_state = authenticate_request(
                _BearerRequest(token),
                AuthenticateRequestOptions(secret_key=self._secret_key),
            )
        except Exception as e:
            raise AuthenticationError(f"Token verification failed: {e}") from e

        if not request_state.is_signed_in or request_state.payload is None:
            raise AuthenticationError(f"Token verification failed: {request_state.message or 'unknown'}")

        claims = request_state.payload
        user_id = str(claims["sub"])
        if claims.get(ROLE_CLAIM):
            return AuthUser(
                user_id=user_id,
                email=str(claims.get("email", "")),
                name=str(claims.get("name", "")),
                role=_role_from(claims[ROLE_CLAIM]),
                metadata={},
            )
        return await self.get_user(user_id)

    async def get_user(self, user_id: str) -> AuthUser:
        try:
            user = self._client.users.get(user_id=user_id)
        except Exception as e:
            raise AuthenticationError(f"Failed to fetch user: {e}") from e

        metadata = dict(user.public_metadata) if user.public_metadata else {}
        name = f"{user.first_name or ''} {user.last_name or ''}".strip()
        return AuthUser(
            user_id=user.id,
            email=_primary_email(user),
            name=name or user.username or "",
            role=_role_from(metadata.get("role")),
            metadata={k: str(v) for k, v in metadata.items()},
        )

    async def decode_claims(self, token: str) -> dict[str, object]:
        """Decode JWT claims WITHOUT signature verification. For logging/routing only."""
        try:
            decoded: dict[str, object] = jwt.decode(token, options={"verify_signature": False})
            return decoded
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {e}") from e
