"""NixOS boot-configuration overlay for replacement instances.

A replacement instance boots from a copy of the original's user data. If that
copy predates the AMI-specific settings, first boot on the new instance fails.
The overlay parses the NixOS module into its argument set, its ``imports``
list and its body, then guarantees three things:

* ``modulesPath`` is in the argument set,
* the Amazon image module is imported,
* ``networking.hostName`` is assigned.

Anything that does not parse as a NixOS module (shell scripts, cloud-init,
modules with a ``let`` preamble) is returned unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from loguru import logger

from devbox.constants import DEFAULT_HOSTNAME

log = logger.bind(component="userdata")

AMAZON_IMAGE_IMPORT = '"${modulesPath}/virtualisation/amazon-image.nix"'
_AMAZON_IMAGE_MARKER = "amazon-image.nix"
_REQUIRED_ARGS = frozenset({"config", "pkgs"})
_INDENT = "  "

_HEADER = re.compile(
    r"\A(?P<lead>(?:[ \t]*(?:#[^\n]*)?\n)*[ \t]*)"
    r"\{(?P<args>[^{}]*)\}[ \t]*:(?P<gap>\s*)\{"
)
_IMPORTS = re.compile(
    r"^(?P<indent>[ \t]*)imports\s*=\s*\["
    r'(?P<items>(?:"(?:[^"\\]|\\.)*"|#[^\n]*|[^\]#"])*)'
    r"\]\s*;",
    re.MULTILINE,
)
_IMPORT_ITEM = re.compile(r'"(?:[^"\\]|\\.)*"|#[^\n]*|[^\s"#]+')
_HOSTNAME = re.compile(r"^\s*networking\.hostName\s*=", re.MULTILINE)


def _import_items(items: str) -> tuple[str, ...]:
    return tuple(t for t in _IMPORT_ITEM.findall(items) if not t.startswith("#"))


def _split_args(header: str) -> tuple[str, ...]:
    return tuple(a.strip() for a in header.strip("{}").split(",") if a.strip())


@dataclass(frozen=True, slots=True)
class NixosModule:
    """A NixOS module split at its structural anchors.

    ``lead`` is whatever precedes the argument set (comments, blank lines),
    ``gap`` the whitespace between ``:`` and the body's opening brace, and
    ``body`` everything after that brace.
    """

    lead: str
    header: str
    args: tuple[str, ...]
    gap: str
    body: str

    @property
    def imports(self) -> tuple[str, ...]:
        if match := _IMPORTS.search(self.body):
            return _import_items(match.group("items"))
        return ()

    @property
    def has_hostname(self) -> bool:
        return _HOSTNAME.search(self.body) is not None

    def render(self) -> str:
        header = self.header
        if self.args != _split_args(header):
            header = f"{{ {', '.join(self.args)} }}"
        return f"{self.lead}{header}:{self.gap}{{{self.body}"


def parse_nixos_module(text: str) -> NixosModule | None:
    """Split text into a NixosModule, or return None if it is not one."""
    match = _HEADER.match(text)
    if match is None:
        return None
    header = "{" + match.group("args") + "}"
    args = _split_args(header)
    if not _REQUIRED_ARGS <= set(args):
        return None
    return NixosModule(
        lead=match.group("lead"),
        header=header,
        args=args,
        gap=match.group("gap"),
        body=text[match.end():],
    )


def hostname_for(name_tag: str | None) -> str:
    if not name_tag or name_tag == "-":
        return DEFAULT_HOSTNAME
    return name_tag


def _nix_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("${", "\\${")
    return f'"{escaped}"'


def _with_modules_path(args: tuple[str, ...]) -> tuple[str, ...]:
    if "modulesPath" in args:
        return args
    if "..." in args:
        i = args.index("...")
        return (*args[:i], "modulesPath", *args[i:])
    return (*args, "modulesPath")


def _insert_at_open(body: str, line: str) -> str:
    if body.startswith("\n"):
        return f"\n{line}\n{body[1:]}"
    return f"\n{line}\n{body}"


def _with_amazon_image(body: str) -> str:
    match = _IMPORTS.search(body)
    if match is None:
        return _insert_at_open(body, f"{_INDENT}imports = [ {AMAZON_IMAGE_IMPORT} ];")
    items = match.group("items")
    if any(_AMAZON_IMAGE_MARKER in item for item in _import_items(items)):
        return body
    close = match.end("items")
    head, newline, tail = items.rpartition("\n")
    if newline and not tail.strip():
        # Multi-line list: new entry on its own line above the closing bracket.
        at = match.start("items") + len(head) + 1
        prev = head.rpartition("\n")[2] if "\n" in head else ""
        lead = prev[: len(prev) - len(prev.lstrip())] or match.group("indent") + _INDENT
        entry = f"{lead}{AMAZON_IMAGE_IMPORT}\n"
        return body[:at] + entry + body[at:]
    sep = "" if items[-1:].isspace() else " "
    return f"{body[:close]}{sep}{AMAZON_IMAGE_IMPORT} {body[close:]}"


def _with_hostname(body: str, hostname: str) -> str:
    line = f"{_INDENT}networking.hostName = {_nix_string(hostname)};"
    match = _IMPORTS.search(body)
    if match is None:
        return _insert_at_open(body, line)
    end = match.end()
    if body[end:].startswith("\n"):
        end += 1
        return f"{body[:end]}{line}\n{body[end:]}"
    return f"{body[:end]}\n{line}{body[end:]}"


def patch_boot_config(text: str, name_tag: str | None = None) -> str:
    """Return text with the replacement-boot requirements guaranteed.

    Args:
        text: Decoded user data of the original instance.
        name_tag: Name tag of the original instance, used as hostname when
            the module does not set one.

    Returns:
        The patched module, or text unchanged if it is not a NixOS module.
    """
    module = parse_nixos_module(text)
    if module is None:
        log.debug("User data is not a NixOS module, leaving it as is")
        return text

    body = _with_amazon_image(module.body)
    patched = replace(module, args=_with_modules_path(module.args), body=body)
    if not patched.has_hostname:
        patched = replace(patched, body=_with_hostname(patched.body, hostname_for(name_tag)))

    result = patched.render()
    if result != text:
        log.info("Patched NixOS user data for replacement boot")
    return result


def patch_user_data(blob: bytes, name_tag: str | None = None) -> bytes:
    """Apply patch_boot_config to raw user data.

    Blobs that are not UTF-8 text (gzip-compressed cloud-init, MIME archives
    with binary parts) are returned byte for byte.
    """
    try:
        text = blob.decode()
    except UnicodeDecodeError:
        log.debug("User data is not UTF-8 text, passing it through")
        return blob
    return patch_boot_config(text, name_tag).encode()
