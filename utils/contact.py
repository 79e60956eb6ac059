"""Contact links that hand a buyer over to WhatsApp."""

from __future__ import annotations

from urllib.parse import quote

MESSAGE_TEMPLATE = "Hi! I'm interested in the {title} ({currency} {price}). Could you provide more details?"

# Characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"


def format_price(price: float) -> str:
    """Group thousands and drop a trailing ``.0`` (1100.0 -> ``1,100``)."""

    if float(price).is_integer():
        return f"{int(price):,}"
    return f"{price:,}"


def build_contact_url(title: str, price: float, phone: str, currency: str = "AED") -> str:
    message = MESSAGE_TEMPLATE.format(title=title, currency=currency, price=format_price(price))
    return f"https://wa.me/{phone}?text={quote(message, safe=_URI_COMPONENT_SAFE)}"
