# -- identity.py (kimlik sağlayıcısının verdiği token ile kullanıcıyı doğrula) --
import logging
from typing import Optional
import jwt

from katip.config import Settings

logger = logging.getLogger(__name__)


class IdentityRejected(Exception):
    status_code = 401
    def __init__(self, message:str): super().__init__(message); self.message = message


def decode_token(token:str, settings:Settings)->dict:
    options={} if settings.jwt_audience else {"verify_aud": False}
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
                      audience=settings.jwt_audience, options=options)


def confirm_identity(user_id:str, token:Optional[str], settings:Settings)->None:
    """Raise IdentityRejected unless `token` proves the caller is `user_id`. No-op when no secret is configured."""
    if not settings.jwt_secret: return
    if not token: raise IdentityRejected("Auth required")
    try: sub=decode_token(token, settings).get("sub")
    except jwt.PyJWTError as e:
        logger.warning("identity token rejected: %s", e)
        raise IdentityRejected("Invalid token")
    if sub!=user_id: raise IdentityRejected("Token does not match user")
