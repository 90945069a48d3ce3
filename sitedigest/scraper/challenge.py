"""Bot-protection detection by inspecting raw HTML.

``detect`` scans the head of a document against an ordered signature table
and returns a human-readable label for the first match.  Order matters: the
more specific SiteGround/Cloudflare signatures come before the generic
``captcha`` catch-all so the reported cause is as precise as possible.
"""

from __future__ import annotations

from sitedigest.config import settings

_SAMPLE_LENGTH = 4096

_SIGNATURES: tuple[tuple[str, str], ...] = (
    ("sgcaptcha", "SiteGround CAPTCHA (SGCaptcha)"),
    ("/.well-known/sgcaptcha", "SiteGround CAPTCHA redirect"),
    ("cf-challenge", "Cloudflare challenge"),
    ("just a moment", "Cloudflare JS challenge"),
    ("attention required", "Cloudflare Attention Required"),
    ("enable javascript", "JavaScript-required gate"),
    ("captcha", "Generic CAPTCHA"),
    ("hcaptcha", "hCaptcha challenge"),
    ("g-recaptcha", "Google reCAPTCHA"),
    ("checking your browser", "Browser verification gate"),
    ("ddos protection by", "DDoS protection interstitial"),
)


def detect(html: str | None) -> str | None:
    """Return the label of the first challenge signature found, or ``None``."""
    if not html or not html.strip():
        return None

    sample = html[:_SAMPLE_LENGTH].lower()
    for pattern, label in _SIGNATURES:
        if pattern in sample:
            return label
    return None


def is_challenge(html: str | None) -> bool:
    """Return ``True`` if *html* looks like an interstitial instead of content."""
    return detect(html) is not None


def is_too_thin(html: str | None, threshold: int | None = None) -> bool:
    """Return ``True`` if *html* is missing, blank or shorter than *threshold*.

    *threshold* defaults to ``settings.thin_threshold`` (600).
    """
    if threshold is None:
        threshold = settings.thin_threshold
    return not html or not html.strip() or len(html) < threshold
