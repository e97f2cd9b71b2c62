"""
Case-encoding of module paths and versions.

Module paths are case-sensitive but end up as directory names on filesystems
that may not be, and in URLs. Every uppercase letter is therefore written as
``!`` followed by its lowercase form::

    github.com/Azure/azure-sdk  ->  github.com/!azure/azure-sdk

The escaped form never contains uppercase letters, so two different module
paths can never map to the same directory on a case-insensitive disk.
"""

import re

from modproxy.exceptions import ValidationError

_MODULE_ELEMENT = re.compile(r"^[A-Za-z0-9\-._~]+$")
_VERSION = re.compile(r"^[A-Za-z0-9\-._~+]+$")


def check_module_path(path: str) -> None:
    """
    Check that a module path is well formed.

    Raises:
        ValidationError: If the path is empty, has empty or dot elements,
            illegal characters, or a first element without a dot.
    """
    if not path:
        raise ValidationError("malformed module path: empty string")
    if path.startswith("/") or path.endswith("/"):
        raise ValidationError(f"malformed module path {path!r}: leading or trailing slash")

    elements = path.split("/")
    for elem in elements:
        if not elem:
            raise ValidationError(f"malformed module path {path!r}: double slash")
        if not _MODULE_ELEMENT.match(elem):
            raise ValidationError(f"malformed module path {path!r}: invalid char in {elem!r}")
        if elem.startswith(".") or elem.endswith("."):
            raise ValidationError(
                f"malformed module path {path!r}: element {elem!r} has leading or trailing dot"
            )

    first = elements[0]
    if "." not in first:
        raise ValidationError(f"malformed module path {path!r}: missing dot in first path element")
    if first.startswith("-"):
        raise ValidationError(f"malformed module path {path!r}: leading dash in first path element")


def check_version(version: str) -> None:
    """
    Check that a version is usable as a single path element.

    Raises:
        ValidationError: If the version is empty, a dot element, or contains
            characters outside the allowed set.
    """
    if not version:
        raise ValidationError("malformed version: empty string")
    if version in (".", ".."):
        raise ValidationError(f"malformed version {version!r}")
    if not _VERSION.match(version):
        raise ValidationError(f"malformed version {version!r}: invalid characters")


def _escape(value: str) -> str:
    out = []
    for ch in value:
        if "A" <= ch <= "Z":
            out.append("!" + ch.lower())
        else:
            out.append(ch)
    return "".join(out)


def _unescape(value: str) -> str:
    out = []
    bang = False
    for ch in value:
        if ord(ch) >= 0x80:
            raise ValidationError(f"invalid escaped string {value!r}: non-ASCII character")
        if bang:
            bang = False
            if not "a" <= ch <= "z":
                raise ValidationError(f"invalid escaped string {value!r}: bad escape sequence")
            out.append(ch.upper())
            continue
        if ch == "!":
            bang = True
            continue
        if "A" <= ch <= "Z":
            raise ValidationError(f"invalid escaped string {value!r}: unescaped uppercase letter")
        out.append(ch)
    if bang:
        raise ValidationError(f"invalid escaped string {value!r}: trailing escape marker")
    return "".join(out)


def escape_path(path: str) -> str:
    """Escape a module path for use in URLs and cache directories."""
    check_module_path(path)
    return _escape(path)


def unescape_path(escaped: str) -> str:
    """Reverse escape_path, rejecting anything escape_path cannot produce."""
    path = _unescape(escaped)
    check_module_path(path)
    return path


def escape_version(version: str) -> str:
    """Escape a version for use in URLs and cache directories."""
    check_version(version)
    return _escape(version)


def unescape_version(escaped: str) -> str:
    """Reverse escape_version, rejecting anything escape_version cannot produce."""
    version = _unescape(escaped)
    check_version(version)
    return version
