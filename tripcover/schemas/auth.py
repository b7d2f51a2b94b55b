from pydantic import BaseModel


class TokenPayload(BaseModel):
    sub: str  # Subject (users.external_id)
    exp: int  # Expiration timestamp
    iat: int | None = None
    email: str | None = None
    name: str | None = None
