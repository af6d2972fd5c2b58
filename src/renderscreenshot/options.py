"""Immutable fluent builder for screenshot options.

Every mutator returns a new `TakeOptions`; the receiver is never modified, so
one instance can be shared freely and extended in different directions:

    base = TakeOptions.url("https://example.com").format("png")
    og = base.preset("og_card")
    mobile = base.device("iphone_14_pro").full_page()
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping
from urllib.parse import quote_plus

from .signing import stringify

# flat config key -> GET query parameter name
_QUERY_MAPPINGS = {
    "url": "url",
    "html": "html",
    "preset": "preset",
    "width": "width",
    "height": "height",
    "device": "device",
    "scale": "scale",
    "full_page": "full_page",
    "element": "selector",
    "format": "format",
    "quality": "quality",
    "delay": "delay",
    "wait_for_timeout": "timeout",
    "block_ads": "block_ads",
    "block_cookie_banners": "block_cookies",
    "dark_mode": "dark_mode",
    "cache_ttl": "cache_ttl",
}


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
        return [value]
    return list(value)


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return frozenset((k, _freeze(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(v) for v in value)
    return value


@dataclass(frozen=True)
class TakeOptions:
    config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # nested values are copied too; nothing the caller holds aliases the instance
        object.__setattr__(self, "config", MappingProxyType(copy.deepcopy(dict(self.config))))

    def __hash__(self) -> int:
        return hash(_freeze(self.config))

    # Factories

    @classmethod
    def url(cls, url: str) -> "TakeOptions":
        return cls({"url": url})

    @classmethod
    def html(cls, html: str) -> "TakeOptions":
        return cls({"html": html})

    @classmethod
    def from_(cls, mapping: Mapping[str, Any]) -> "TakeOptions":
        return cls(mapping)

    def _with(self, **updates: Any) -> "TakeOptions":
        merged = dict(self.config)
        merged.update(updates)
        return type(self)(merged)

    # Viewport

    def width(self, value: int) -> "TakeOptions":
        return self._with(width=value)

    def height(self, value: int) -> "TakeOptions":
        return self._with(height=value)

    def scale(self, value: float) -> "TakeOptions":
        return self._with(scale=value)

    def mobile(self, value: bool = True) -> "TakeOptions":
        return self._with(mobile=value)

    # Capture

    def full_page(self, value: bool = True) -> "TakeOptions":
        return self._with(full_page=value)

    def element(self, selector: str) -> "TakeOptions":
        return self._with(element=selector)

    def format(self, value: str) -> "TakeOptions":
        return self._with(format=value)

    def quality(self, value: int) -> "TakeOptions":
        return self._with(quality=value)

    # Wait

    def wait_for(self, value: str) -> "TakeOptions":
        return self._with(wait_for=value)

    def delay(self, value: int) -> "TakeOptions":
        return self._with(delay=value)

    def wait_for_selector(self, selector: str) -> "TakeOptions":
        return self._with(wait_for_selector=selector)

    def wait_for_timeout(self, value: int) -> "TakeOptions":
        return self._with(wait_for_timeout=value)

    # Presets

    def preset(self, value: str) -> "TakeOptions":
        return self._with(preset=value)

    def device(self, value: str) -> "TakeOptions":
        return self._with(device=value)

    # Blocking

    def block_ads(self, value: bool = True) -> "TakeOptions":
        return self._with(block_ads=value)

    def block_trackers(self, value: bool = True) -> "TakeOptions":
        return self._with(block_trackers=value)

    def block_cookie_banners(self, value: bool = True) -> "TakeOptions":
        return self._with(block_cookie_banners=value)

    def block_chat_widgets(self, value: bool = True) -> "TakeOptions":
        return self._with(block_chat_widgets=value)

    def block_urls(self, patterns: Iterable[str]) -> "TakeOptions":
        return self._with(block_urls=_as_list(patterns))

    def block_resources(self, types: Iterable[str]) -> "TakeOptions":
        return self._with(block_resources=_as_list(types))

    # Page manipulation

    def inject_script(self, script: str) -> "TakeOptions":
        return self._with(inject_script=script)

    def inject_style(self, style: str) -> "TakeOptions":
        return self._with(inject_style=style)

    def click(self, selector: str) -> "TakeOptions":
        return self._with(click=selector)

    def hide(self, selectors: str | Iterable[str]) -> "TakeOptions":
        return self._with(hide=_as_list(selectors))

    def remove(self, selectors: str | Iterable[str]) -> "TakeOptions":
        return self._with(remove=_as_list(selectors))

    # Browser emulation

    def dark_mode(self, value: bool = True) -> "TakeOptions":
        return self._with(dark_mode=value)

    def reduced_motion(self, value: bool = True) -> "TakeOptions":
        return self._with(reduced_motion=value)

    def media_type(self, value: str) -> "TakeOptions":
        return self._with(media_type=value)

    def user_agent(self, value: str) -> "TakeOptions":
        return self._with(user_agent=value)

    def timezone(self, value: str) -> "TakeOptions":
        return self._with(timezone=value)

    def locale(self, value: str) -> "TakeOptions":
        return self._with(locale=value)

    def geolocation(self, latitude: float, longitude: float, *, accuracy: float | None = None) -> "TakeOptions":
        geo: Dict[str, Any] = {"latitude": latitude, "longitude": longitude}
        if accuracy is not None:
            geo["accuracy"] = accuracy
        return self._with(geolocation=geo)

    # Network

    def headers(self, value: Mapping[str, str]) -> "TakeOptions":
        return self._with(headers=dict(value))

    def cookies(self, value: Any) -> "TakeOptions":
        return self._with(cookies=value)

    def auth_basic(self, username: str, password: str) -> "TakeOptions":
        return self._with(auth_basic={"username": username, "password": password})

    def auth_bearer(self, token: str) -> "TakeOptions":
        return self._with(auth_bearer=token)

    def bypass_csp(self, value: bool = True) -> "TakeOptions":
        return self._with(bypass_csp=value)

    # Cache

    def cache_ttl(self, value: int) -> "TakeOptions":
        return self._with(cache_ttl=value)

    def cache_refresh(self, value: bool = True) -> "TakeOptions":
        return self._with(cache_refresh=value)

    # PDF

    def pdf_paper_size(self, value: str) -> "TakeOptions":
        return self._with(pdf_paper_size=value)

    def pdf_width(self, value: str) -> "TakeOptions":
        return self._with(pdf_width=value)

    def pdf_height(self, value: str) -> "TakeOptions":
        return self._with(pdf_height=value)

    def pdf_landscape(self, value: bool = True) -> "TakeOptions":
        return self._with(pdf_landscape=value)

    def pdf_margin(self, value: str | Mapping[str, str]) -> "TakeOptions":
        return self._with(pdf_margin=value)

    def pdf_margin_top(self, value: str) -> "TakeOptions":
        return self._with(pdf_margin_top=value)

    def pdf_margin_right(self, value: str) -> "TakeOptions":
        return self._with(pdf_margin_right=value)

    def pdf_margin_bottom(self, value: str) -> "TakeOptions":
        return self._with(pdf_margin_bottom=value)

    def pdf_margin_left(self, value: str) -> "TakeOptions":
        return self._with(pdf_margin_left=value)

    def pdf_scale(self, value: float) -> "TakeOptions":
        return self._with(pdf_scale=value)

    def pdf_print_background(self, value: bool = True) -> "TakeOptions":
        return self._with(pdf_print_background=value)

    def pdf_page_ranges(self, value: str) -> "TakeOptions":
        return self._with(pdf_page_ranges=value)

    def pdf_header(self, value: str) -> "TakeOptions":
        return self._with(pdf_header=value)

    def pdf_footer(self, value: str) -> "TakeOptions":
        return self._with(pdf_footer=value)

    def pdf_fit_one_page(self, value: bool = True) -> "TakeOptions":
        return self._with(pdf_fit_one_page=value)

    def pdf_prefer_css_page_size(self, value: bool = True) -> "TakeOptions":
        return self._with(pdf_prefer_css_page_size=value)

    # Storage

    def storage_enabled(self, value: bool = True) -> "TakeOptions":
        return self._with(storage_enabled=value)

    def storage_path(self, value: str) -> "TakeOptions":
        return self._with(storage_path=value)

    def storage_acl(self, value: str) -> "TakeOptions":
        return self._with(storage_acl=value)

    # Output

    def to_h(self) -> Dict[str, Any]:
        """Flat deep copy of the configured options."""
        return copy.deepcopy(dict(self.config))

    def to_params(self) -> Dict[str, Any]:
        """Nested JSON body for ``POST /v1/screenshot``; empty groups are omitted."""
        c = self.to_h()
        result: Dict[str, Any] = {}

        for key in ("url", "html", "preset"):
            if key in c:
                result[key] = c[key]

        viewport = {key: c[key] for key in ("width", "height", "scale", "mobile", "device") if key in c}

        capture: Dict[str, Any] = {}
        if c.get("full_page"):
            capture["mode"] = "full_page"
        if c.get("element"):
            capture["selector"] = c["element"]

        output = _truthy(c, format="format", quality="quality")
        wait = _truthy(c, until="wait_for", delay="delay", for_selector="wait_for_selector", timeout="wait_for_timeout")

        block = _present(
            c,
            ads="block_ads",
            trackers="block_trackers",
            cookie_banners="block_cookie_banners",
            chat_widgets="block_chat_widgets",
        )
        block.update(_truthy(c, requests="block_urls", resources="block_resources"))

        page: Dict[str, Any] = {}
        if c.get("inject_script"):
            page["scripts"] = [c["inject_script"]]
        if c.get("inject_style"):
            page["styles"] = [c["inject_style"]]
        page.update(_truthy(c, click="click", hide="hide", remove="remove"))

        browser = _present(c, dark_mode="dark_mode", reduced_motion="reduced_motion")
        browser.update(
            _truthy(
                c,
                media="media_type",
                user_agent="user_agent",
                timezone="timezone",
                locale="locale",
                geolocation="geolocation",
            )
        )

        network = _truthy(c, headers="headers", cookies="cookies")
        network.update(_present(c, bypass_csp="bypass_csp"))
        if c.get("auth_basic"):
            network["auth"] = {"type": "basic", **c["auth_basic"]}
        elif c.get("auth_bearer"):
            network["auth"] = {"type": "bearer", "token": c["auth_bearer"]}

        cache = _truthy(c, ttl="cache_ttl")
        cache.update(_present(c, refresh="cache_refresh"))

        pdf = _truthy(c, paper="pdf_paper_size", width="pdf_width", height="pdf_height")
        pdf.update(_present(c, landscape="pdf_landscape"))
        pdf.update(_truthy(c, scale="pdf_scale"))
        pdf.update(_present(c, background="pdf_print_background"))
        pdf.update(_truthy(c, page_ranges="pdf_page_ranges", header="pdf_header", footer="pdf_footer"))
        pdf.update(_present(c, fit_one_page="pdf_fit_one_page", prefer_css_page_size="pdf_prefer_css_page_size"))
        # a uniform margin wins over the per-side settings
        if c.get("pdf_margin"):
            pdf["margin"] = c["pdf_margin"]
        else:
            margin = _truthy(
                c,
                top="pdf_margin_top",
                right="pdf_margin_right",
                bottom="pdf_margin_bottom",
                left="pdf_margin_left",
            )
            if margin:
                pdf["margin"] = margin

        storage = _present(c, enabled="storage_enabled")
        storage.update(_truthy(c, path="storage_path", acl="storage_acl"))

        groups = (
            ("viewport", viewport),
            ("capture", capture),
            ("output", output),
            ("wait", wait),
            ("block", block),
            ("page", page),
            ("browser", browser),
            ("network", network),
            ("cache", cache),
            ("pdf", pdf),
            ("storage", storage),
        )
        for name, group in groups:
            if group:
                result[name] = group
        return result

    def to_query_string(self) -> str:
        """Flat query string for GET requests, using the short parameter aliases."""
        parts = []
        for config_key, param_name in _QUERY_MAPPINGS.items():
            if config_key not in self.config:
                continue
            parts.append(f"{param_name}={quote_plus(stringify(self.config[config_key]), safe='')}")
        return "&".join(parts)


def _present(config: Mapping[str, Any], **mapping: str) -> Dict[str, Any]:
    # copy keys that are set at all, including False
    return {api_key: config[config_key] for api_key, config_key in mapping.items() if config_key in config}


def _truthy(config: Mapping[str, Any], **mapping: str) -> Dict[str, Any]:
    return {api_key: config[config_key] for api_key, config_key in mapping.items() if config.get(config_key)}
