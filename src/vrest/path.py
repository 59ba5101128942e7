"""Path templating and request URL resolution.

:func:`make_path` fills ``{name}`` placeholders in a path template from an
alternating key/value list, and :func:`make_request_url` joins the result
with the effective base URL.

Example::

    >>> make_path("/orders/{id}/items/{item}", "id", "7", "item", "x1")
    '/orders/7/items/x1'
    >>> make_request_url("https://api.example.com", "", "/orders/7")
    'https://api.example.com/orders/7'
"""

from __future__ import annotations

import re

_PLACEHOLDER_RE = re.compile(r"\{[A-Za-z_0-9]+\}")


def make_path(template: str, *keys_and_values: str) -> str:
    """Replace ``{name}`` placeholders in *template*.

    *keys_and_values* alternates placeholder names and their values. When
    the list is empty or has an odd length the template is returned
    unchanged. Placeholders with no matching key, and anything that is not
    a well-formed ``{[A-Za-z0-9_]+}`` placeholder, are left verbatim. The
    first matching key wins.

    Args:
        template: Path with zero or more ``{name}`` placeholders.
        *keys_and_values: ``name1, value1, name2, value2, ...``.

    Returns:
        The templated path.
    """
    count = len(keys_and_values)
    if count == 0 or count % 2 != 0:
        return template

    def _replace(match: re.Match[str]) -> str:
        key = match.group(0)[1:-1]
        for i in range(0, count, 2):
            if keys_and_values[i] == key:
                return keys_and_values[i + 1]
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, template)


def make_request_url(base_url: str, override_base_url: str, path: str) -> str:
    """Join the effective base URL with *path*.

    The request-level *override_base_url* takes precedence over the
    client-level *base_url*. The base URL is prepended only when it is
    non-empty and does not already occur somewhere in *path*, so callers
    may pass a fully qualified URL as the path.

    Note:
        The check is a plain substring test, not a structural URL
        comparison. A path that happens to contain the base URL text in a
        later segment is used unchanged.
    """
    if override_base_url:
        base_url = override_base_url
    if base_url and base_url not in path:
        return base_url + path
    return path
