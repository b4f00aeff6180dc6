from pydantic import BaseModel, ConfigDict, Field


# --- Ban submission ---

class BanIPRequest(BaseModel):
    # ip is optional here so a missing value is reported as a 400, not a 422
    ip: str | None = None
    reason: str | None = None
    ban_duration: int | None = Field(default=None, alias="banDuration")

    model_config = ConfigDict(populate_by_name=True)


class BanIPResponse(BaseModel):
    message: str
    status: str = "success"
    ip: str
    banned: bool = True
    created: bool
    ban_expiry: int = Field(alias="banExpiry")

    model_config = ConfigDict(populate_by_name=True)


# --- Ban check ---

class BanCheckResponse(BaseModel):
    is_banned: bool = Field(alias="isBanned")
    ip: str
    reason: str | None = None
    ban_expiry: int | None = Field(default=None, alias="banExpiry")
    time_left_seconds: int | None = Field(default=None, alias="timeLeftSeconds")

    model_config = ConfigDict(populate_by_name=True)
