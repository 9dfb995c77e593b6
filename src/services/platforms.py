# src/services/platforms.py
from typing import Literal, Optional

Platform = Literal["youtube", "instagram", "tiktok"]

# Ordem importa: o primeiro host encontrado decide a plataforma
_HOSTS: tuple[tuple[str, Platform], ...] = (
    ("youtube.com", "youtube"),
    ("youtu.be", "youtube"),
    ("instagram.com", "instagram"),
    ("tiktok.com", "tiktok"),
)


def detect_platform(url: Optional[str]) -> Optional[Platform]:
    """Retorna a plataforma de um link por substring do host, ou None."""
    if not url:
        return None
    for host, platform in _HOSTS:
        if host in url:
            return platform
    return None
