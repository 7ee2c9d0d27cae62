"""
Extraction of SDM parameters from a scanned tag URL.

    https://<host>/<path>?u=<UID>&c=<counter>&m=<MAC>[&gid=...&rule=...]

gid and rule are carried along for the caller's logging and never take part
in verification.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from sdmverify.errors import InvalidUrl, MissingParameter


@dataclass(frozen=True)
class ScanParamNames:
    """Query parameter names the tag's NDEF template mirrors into."""
    uid: str = "u"
    counter: str = "c"
    mac: str = "m"


DEFAULT_PARAM_NAMES = ScanParamNames()


@dataclass(frozen=True)
class ScanParams:
    """Raw SDM fields pulled from a URL (still hex strings)."""
    uid: str
    counter: str
    mac: str
    gid: Optional[str] = None
    rule: Optional[str] = None


def extract_scan_params(url: str, names: ScanParamNames = DEFAULT_PARAM_NAMES) -> ScanParams:
    """
    Parse UID, counter and MAC out of a scanned URL.

    Args:
        url: The full URL read from the tag.
        names: Parameter names to look for.

    Returns:
        ScanParams with the raw hex strings.

    Raises:
        InvalidUrl: url is blank or cannot be parsed.
        MissingParameter: one of the SDM parameters is absent or empty.
    """
    if not url or not url.strip():
        raise InvalidUrl("URL is blank")
    try:
        parts = urlsplit(url.strip())
    except ValueError as e:
        raise InvalidUrl(f"Cannot parse URL: {e}") from e
    if not parts.netloc and not parts.query:
        raise InvalidUrl(f"Not a URL: {url!r}")

    query = parse_qs(parts.query, keep_blank_values=True)

    def first(name: str) -> Optional[str]:
        values = query.get(name)
        if not values:
            return None
        return values[0].strip() or None

    fields = {}
    for attr in ("uid", "counter", "mac"):
        name = getattr(names, attr)
        value = first(name)
        if value is None:
            raise MissingParameter(name)
        fields[attr] = value

    return ScanParams(gid=first("gid"), rule=first("rule"), **fields)
