from typing import Literal

from pydantic import BaseModel, Field

UNKNOWN_NAME = "Unknown"
PROFILE_PLACEHOLDER = "/assets/icons/profile-placeholder.svg"


# ---------------------------------------------------------------------------
# Creator relation
# ---------------------------------------------------------------------------

class EmbeddedCreator(BaseModel):
    """Denormalized creator snapshot stored on the post itself."""

    kind: Literal["embedded"] = "embedded"
    id: str = Field("", description="Identifier of the referenced user")
    name: str | None = Field(None, description="Display name, possibly stale")
    image_url: str | None = Field(None, description="Avatar URL, possibly stale")


class CreatorReference(BaseModel):
    """Bare user identifier that must be looked up in the users collection."""

    kind: Literal["reference"] = "reference"
    id: str = Field(..., description="Identifier of the referenced user")


CreatorRef = EmbeddedCreator | CreatorReference


class CreatorTriple(BaseModel):
    """Fully resolved creator as shown next to a post."""

    id: str
    name: str = UNKNOWN_NAME
    image_url: str = PROFILE_PLACEHOLDER


# ---------------------------------------------------------------------------
# Posts, users, saves
# ---------------------------------------------------------------------------

class Post(BaseModel):
    """Canonical post shape consumed by the UI."""

    id: str
    caption: str = ""
    image_url: str | None = None
    image_id: str | None = None
    location: str | None = None
    tags: list[str] = Field(default_factory=list)
    likes: list[str] = Field(default_factory=list, description="Ids of users who liked the post")
    creator: CreatorTriple
    created_at: str | int | float | None = Field(default=None, description="Passed through as stored")
    updated_at: str | int | float | None = None


class SaveRecord(BaseModel):
    """Link between a user and a post they saved.  Only identifiers are kept."""

    id: str
    user: str
    post: str


class User(BaseModel):
    id: str
    account_id: str | None = None
    name: str = UNKNOWN_NAME
    username: str = ""
    email: str = ""
    image_url: str = ""
    bio: str = ""
    saves: list[SaveRecord] = Field(default_factory=list)

    def save_record_for(self, post_id: str) -> SaveRecord | None:
        """Return this user's save record for *post_id*, if any."""
        for record in self.saves:
            if record.post == post_id:
                return record
        return None


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

class Page(BaseModel):
    """One page of the infinite feed."""

    documents: list[Post] = Field(default_factory=list)
    total: int = 0
    cursor: str | None = Field(None, description="Cursor this page was fetched after")


class PageOk(BaseModel):
    ok: Literal[True] = True
    page: Page

    def page_or_empty(self) -> Page:
        return self.page


class PageErr(BaseModel):
    ok: Literal[False] = False
    cursor: str | None = None
    reason: str

    def page_or_empty(self) -> Page:
        """Collapse the failure to an empty page for display."""
        return Page(documents=[], total=0, cursor=self.cursor)


PageResult = PageOk | PageErr
