from pydantic import AliasChoices, BaseModel, Field


class SecretCreate(BaseModel):
    # The browser page posts a form field named encryptedData; API clients
    # may send JSON with a ciphertext field instead.
    ciphertext: str = Field(
        ...,
        validation_alias=AliasChoices("ciphertext", "encryptedData"),
        description="Base64 encoded nonce + AES-GCM ciphertext",
    )


class SecretCreateResponse(BaseModel):
    id: str


class SecretRevealResponse(BaseModel):
    data: str


class ErrorResponse(BaseModel):
    error: str
