from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from quill.models import PostStatus

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


def _strip(value):
    """Trim strings before length constraints are checked."""
    return value.strip() if isinstance(value, str) else value


# --- User ---

class UserBase(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(max_length=255)
    display_name: str | None = None
    bio: str | None = Field(None, max_length=500)


class UserCreate(UserBase):
    pass


class UserResponse(UserBase):
    id: int
    role: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UserDetail(UserResponse):
    posts: list[dict] = []


# --- Category ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: str | None = Field(None, max_length=200)
    color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return _strip(value)


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = Field(None, max_length=200)
    color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return _strip(value)


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None
    color: str
    post_count: int
    created_at: datetime
    updated_at: datetime | None
    model_config = ConfigDict(from_attributes=True)


# --- Comment ---

class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=500)


class CommentResponse(BaseModel):
    id: int
    post_id: int
    author_id: int
    author: dict | None = None
    content: str
    created_at: datetime


# --- Post ---

def _clean_tags(tags: list[str] | None) -> list[str] | None:
    """Trim, drop blanks and de-duplicate while keeping first-seen order."""
    if tags is None:
        return None
    seen: dict[str, None] = {}
    for tag in tags:
        tag = tag.strip()
        if tag:
            seen.setdefault(tag, None)
    return list(seen)


class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    content: str = Field(min_length=1)
    category: int
    excerpt: str | None = Field(None, max_length=300)
    tags: list[str] = []
    status: PostStatus = PostStatus.DRAFT
    featured_image: str | None = Field(None, max_length=255)

    @field_validator("title", "content", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str]) -> list[str]:
        value = _clean_tags(value)
        for tag in value:
            if len(tag) > 30:
                raise ValueError("Tags must be at most 30 characters")
        return value


class PostUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=100)
    content: str | None = Field(None, min_length=1)
    category: int | None = None
    excerpt: str | None = Field(None, max_length=300)
    tags: list[str] | None = None
    status: PostStatus | None = None
    featured_image: str | None = Field(None, max_length=255)

    @field_validator("title", "content", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str] | None) -> list[str] | None:
        value = _clean_tags(value)
        for tag in value or []:
            if len(tag) > 30:
                raise ValueError("Tags must be at most 30 characters")
        return value


class LikeResponse(BaseModel):
    likes: int
    isLiked: bool


class MessageResponse(BaseModel):
    message: str


# --- Pagination ---

class PostPage(BaseModel):
    posts: list[dict]
    total: int
    totalPages: int
    currentPage: int
