from pydantic import BaseModel, Field
from typing import Optional, Literal

UserRoleLiteral = Literal["ADMIN", "BARTENDER", "WAITER"]

class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    remember: bool = False

class UserIn(BaseModel):
    email: str = Field(min_length=3, max_length=160)
    password: str = Field(min_length=6)
    role: UserRoleLiteral = "WAITER"
    name: Optional[str] = None

class UserUpdate(BaseModel):
    email: Optional[str] = Field(default=None, min_length=3, max_length=160)
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[UserRoleLiteral] = None
    name: Optional[str] = None
