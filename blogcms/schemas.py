"""Request bodies accepted by the JSON API."""

from typing import Optional

from pydantic import BaseModel, Field

MAX_CONTENT_LENGTH = 200_000


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=100)


class PostCreate(BaseModel):
    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=500)
    date: str
    tags: list[str]
    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    image: Optional[str] = ""
    url: Optional[str] = None
    published: bool = True


class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    date: Optional[str] = None
    tags: Optional[list[str]] = None
    content: Optional[str] = Field(None, min_length=1, max_length=MAX_CONTENT_LENGTH)
    image: Optional[str] = None
    url: Optional[str] = None
    published: Optional[bool] = None
