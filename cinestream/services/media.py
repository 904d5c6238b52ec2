import hashlib
import hmac
import time
from urllib.parse import urlencode

DEFAULT_URL_TTL = 3600


class MediaService:
    """Builds signed, time-bounded playback URLs for stored videos."""

    def __init__(self, settings, clock=time.time):
        self.base_url = settings.media_base_url.rstrip("/")
        self.signing_key = (settings.media_signing_key or settings.jwt_secret).encode("utf-8")
        self.clock = clock

    def _sign(self, path, expires):
        message = f"{path}:{expires}".encode("utf-8")
        return hmac.new(self.signing_key, message, hashlib.sha256).hexdigest()

    def signed_video_url(self, media_id, expires_in=DEFAULT_URL_TTL, width=None, height=None, quality="auto"):
        expires = int(self.clock()) + int(expires_in)

        transforms = [f"q_{quality or 'auto'}"]
        if width:
            transforms.append(f"w_{int(width)}")
        if height:
            transforms.append(f"h_{int(height)}")
        path = f"/{','.join(transforms)}/{media_id}.mp4"

        query = urlencode({"expires": expires, "signature": self._sign(path, expires)})
        return f"{self.base_url}{path}?{query}"

    def verify(self, path, expires, signature):
        if int(expires) < int(self.clock()):
            return False
        return hmac.compare_digest(self._sign(path, int(expires)), signature)

    def video_info(self, movie):
        meta = movie.media_metadata or {}
        return {
            "duration": movie.duration * 60 if movie.duration else None,
            "width": meta.get("width"),
            "height": meta.get("height"),
            "format": meta.get("format", "mp4"),
            "createdAt": movie.created_at.isoformat() if movie.created_at else None,
        }
