"""ASGI entrypoint for the protection control API."""

from vr_art_guard.api.app import create_app
from vr_art_guard.containers import build_container

app = create_app(build_container())
