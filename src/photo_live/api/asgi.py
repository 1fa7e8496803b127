"""ASGI entrypoint for the photo live API."""

from photo_live.api.app import create_app
from photo_live.containers import build_container

app = create_app(build_container())
