"""Image browsing: cache, lightbox navigation and the gallery controller."""

from .cache import ImageCache
from .navigation import Navigator, SWIPE_THRESHOLD
from .gallery import Gallery, FAVORITES_FOLDER

__all__ = [
    "ImageCache",
    "Navigator",
    "SWIPE_THRESHOLD",
    "Gallery",
    "FAVORITES_FOLDER",
]
