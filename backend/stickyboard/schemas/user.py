from pydantic import BaseModel


class RegisterRequest(BaseModel):
    username: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class LoginResponse(BaseModel):
    token: str
    refreshToken: str
    username: str


class LoggedInUser(BaseModel):
    userId: int
    username: str


class AccessTokenResponse(BaseModel):
    success: bool = True
    accessToken: str
