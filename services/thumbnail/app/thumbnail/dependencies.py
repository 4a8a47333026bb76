"""
Thumbnail service — request dependencies.

The application factory builds the settings, AWS adapters, broadcaster and
pipeline once and keeps them on app.state; routes reach them through these.
"""
from fastapi import Request

from app.broadcaster import EventBroadcaster
from app.config import Settings
from app.s3 import ObjectStore
from app.thumbnail.service import ThumbnailPipeline


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def get_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.broadcaster


def get_pipeline(request: Request) -> ThumbnailPipeline:
    return request.app.state.pipeline
