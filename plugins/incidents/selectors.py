"""
Selector / extraction helpers shared by the list, detail and admin scrapers.
"""

from __future__ import annotations

import re
from typing import Any, Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

_WS = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    """Collapse whitespace runs to a single space and trim."""
    if not value:
        return ""
    return _WS.sub(" ", value).strip()


def text_of(node: Any) -> str:
    """Normalised text content of a parsed node (``""`` for ``None``)."""
    if node is None:
        return ""
    return normalize_text(node.get_text())


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def origin_of(url: str) -> str:
    parts = urlsplit(url or "")
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}"


def absolute_url(href: Optional[str], base_url: str) -> str:
    """Resolve ``href`` against the origin of ``base_url``."""
    if not href:
        return ""
    if href.startswith("http"):
        return href
    origin = origin_of(base_url)
    if not origin:
        return href
    return urljoin(origin + "/", href)


def same_origin(url_a: str, url_b: str) -> bool:
    return bool(origin_of(url_a)) and origin_of(url_a) == origin_of(url_b)


# --------------------------------------------------------------------------- #
# In-page helpers (run in the admin portal page)
#
# Inputs are located by placeholder first, label text second; the located
# input is tagged with ``data-lookup-field`` so later calls can address it.
LOCATE_INPUTS_JS = """
(fields) => {
  const normalize = (v) => (v || "").replace(/\\s+/g, " ").trim();
  const byPlaceholder = (text) =>
    Array.from(document.querySelectorAll("input"))
      .find((input) => (input.getAttribute("placeholder") || "").includes(text));
  const byLabel = (text) => {
    const label = Array.from(document.querySelectorAll("label"))
      .find((l) => normalize(l.textContent).startsWith(text));
    if (!label) return null;
    const container = label.closest("div");
    if (!container) return null;
    return (container.parentElement && container.parentElement.querySelector("input"))
      || container.querySelector("input");
  };
  const found = [];
  for (const field of fields) {
    const input = byPlaceholder(field.placeholder) || byLabel(field.label);
    if (input) {
      input.setAttribute("data-lookup-field", field.name);
      found.push(field.name);
    }
  }
  return found;
}
"""

SET_INPUT_VALUE_JS = """
([name, value]) => {
  const input = document.querySelector(`input[data-lookup-field="${name}"]`);
  if (!input) return false;
  const setter = Object.getOwnPropertyDescriptor(HTMLInputElement.prototype, "value")?.set;
  if (setter) setter.call(input, String(value));
  else input.value = String(value);
  input.dispatchEvent(new Event("input", { bubbles: true }));
  input.dispatchEvent(new Event("change", { bubbles: true }));
  input.dispatchEvent(new Event("blur", { bubbles: true }));
  return true;
}
"""
