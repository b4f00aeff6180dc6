"""
Client address resolution.

Behind a proxy (Cloudflare, Vercel, ...) the peer address is the proxy's. Each
trusted proxy appends the address it saw to X-Forwarded-For, so the client is
the entry FORWARDED_TRUSTED_HOPS from the right. Anything left of it was sent
by the client and cannot be trusted.
"""

from fastapi import Request

from app.core.config import settings


def get_client_ip(request: Request) -> str | None:
    if settings.TRUST_FORWARDED_FOR and settings.FORWARDED_TRUSTED_HOPS > 0:
        forwarded = request.headers.get("x-forwarded-for", "")
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        if hops:
            return hops[-min(settings.FORWARDED_TRUSTED_HOPS, len(hops))]
    return request.client.host if request.client else None
