"""Small response models: background GIF, 404 story, error envelope."""

from pydantic import BaseModel, ConfigDict


class BackgroundGIF(BaseModel):
    model_config = ConfigDict(extra="ignore")

    link: str


class Story(BaseModel):
    """The story shown on the 404 page."""

    model_config = ConfigDict(extra="ignore")

    story: str


class Response(BaseModel):
    """Envelope for every error response; status_code mirrors the HTTP status."""

    message: str
    status_code: int
