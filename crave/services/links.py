from __future__ import annotations

from crave.app.domain.models import Post

DEFAULT_SHARE_BASE_URL = "https://crave.app"


def share_url(post: Post, base_url: str = DEFAULT_SHARE_BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/post/{post.id}"


def share_message(post: Post, base_url: str = DEFAULT_SHARE_BASE_URL) -> str:
    """Text handed to the platform share sheet."""
    caption = post.description.strip()
    link = share_url(post, base_url)
    return f"{caption}\n{link}" if caption else link
