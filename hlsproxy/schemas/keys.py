from pydantic import BaseModel


class DeriveKeyResponse(BaseModel):
    kid: str
    keyLength: int
    cached: bool = True


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    cachedKeys: int
