"""Derive device metadata (IP, platform, browser) from request headers."""

from __future__ import annotations

from collections.abc import Mapping

from ua_parser import user_agent_parser

from sessionguard.services.auth.dto import DeviceInfo

UNKNOWN = "Unknown"

# Parsers report unmatched agents as "Other".
_UNMATCHED = "Other"

# Substring overrides for Chromium forks the parser reports as plain Chrome.
# (needles, label); first match wins.
_BROWSER_OVERRIDES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("samsungbrowser",), "Samsung Browser"),
    (("vivaldi",), "Vivaldi"),
    (("edg/", "edge/"), "Edge"),
    (("opr/", "opera"), "Opera"),
    (("yabrowser", "yandex"), "Yandex"),
    (("brave",), "Brave"),
)

# Parser families collapsed to one label ("Chrome Mobile iOS" is Chrome).
_BROWSER_FAMILIES = ("Chrome", "Firefox", "Safari")

_PLATFORM_FAMILIES: tuple[tuple[str, str], ...] = (
    ("Windows", "Windows"),
    ("Mac", "macOS"),
    ("Linux", "Linux"),
    ("Android", "Android"),
    ("iOS", "iOS"),
)


def _browser(family: str | None, user_agent: str, hint: str | None) -> str:
    if hint and hint.strip().lower() == "brave":
        return "Brave"
    ua = user_agent.lower()
    for needles, label in _BROWSER_OVERRIDES:
        if any(n in ua for n in needles):
            return label
    if not family or family == _UNMATCHED:
        return UNKNOWN
    return next((label for label in _BROWSER_FAMILIES if label in family), family)


def _platform(family: str | None) -> str:
    if not family or family == _UNMATCHED:
        return UNKNOWN
    return next((label for needle, label in _PLATFORM_FAMILIES if needle in family), family)


class DeviceInfoResolver:
    """
    Build :class:`DeviceInfo` from an incoming request.

    The resolver is stateless; one instance can serve every request.
    """

    def resolve(self, headers: Mapping[str, str], remote_addr: str | None = None) -> DeviceInfo:
        """
        Resolve device metadata.

        :param headers: Request headers (case-insensitive lookup is applied).
        :param remote_addr: Socket peer address, used when no proxy header is set.
        :returns: Populated device info; unknown parts are ``"Unknown"``.
        """
        lowered = {k.lower(): v for k, v in headers.items()}
        user_agent = lowered.get("user-agent") or ""
        platform, browser, device_name = self.parse_user_agent(
            user_agent, lowered.get("x-browser-info")
        )
        return DeviceInfo(
            user_agent=user_agent or UNKNOWN,
            ip_address=self.client_ip(lowered, remote_addr),
            device_name=device_name,
            platform=platform,
            browser=browser,
        )

    @staticmethod
    def client_ip(headers: Mapping[str, str], remote_addr: str | None) -> str:
        forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
        if forwarded:
            return forwarded
        real_ip = (headers.get("x-real-ip") or "").strip()
        if real_ip:
            return real_ip
        return remote_addr or UNKNOWN

    @staticmethod
    def parse_user_agent(user_agent: str, browser_hint: str | None = None) -> tuple[str, str, str]:
        """Return ``(platform, browser, device_name)`` for a raw user agent."""
        if not user_agent:
            return UNKNOWN, UNKNOWN, "Unknown Device"

        parsed = user_agent_parser.Parse(user_agent)
        browser = _browser(parsed["user_agent"].get("family"), user_agent, browser_hint)
        platform = _platform(parsed["os"].get("family"))
        return platform, browser, f"{platform} - {browser}"
