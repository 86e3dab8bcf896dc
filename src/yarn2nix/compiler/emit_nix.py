"""Nix expression emission.

Renders resolved sources into a function of
``{ fetchurl, fetchgit, linkFarm, runCommand }`` exposing ``packages`` (a list
of ``{ name, path }`` pairs), ``offline_cache`` (a ``linkFarm`` of every
package) and ``fetchPackGit`` (a tarball built from a ``fetchgit`` checkout).
Output order follows the input order, so identical lockfiles always produce
identical expressions.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from yarn2nix.sources import ProtocolKind, ResolvedSource


class Fetcher(Enum):
    FETCHURL = "fetchurl"
    FETCH_PACK_GIT = "fetchPackGit"


@dataclass(frozen=True, slots=True)
class FetchDeclaration:
    fetcher: Fetcher
    name: str
    args: dict[str, str] = field(default_factory=dict)


PREAMBLE = """\
{ fetchurl, fetchgit, linkFarm, runCommand }: rec {
  offline_cache = linkFarm "offline" packages;
  fetchPackGit = { url, name ? "gittar", rev, sha256 }: runCommand name {} ''
    tar --exclude-vcs -cf "$out" ${fetchgit { inherit url rev sha256; }}
  '';
  packages = ["""

POSTAMBLE = """
  ];
}
"""

_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("${", "\\${"),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
)


def nix_string(value: str) -> str:
    """Quote *value* as a double-quoted Nix string literal."""
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return f'"{value}"'


def declaration_for(source: ResolvedSource) -> FetchDeclaration:
    match source.kind:
        case ProtocolKind.ARCHIVE:
            return FetchDeclaration(
                fetcher=Fetcher.FETCHURL,
                name=source.derived_name,
                args={"url": source.base_location, "sha1": source.hash_or_revision},
            )
        case ProtocolKind.GIT:
            rev = source.hash_or_revision
            return FetchDeclaration(
                fetcher=Fetcher.FETCH_PACK_GIT,
                name=f"{source.derived_name}-{rev}",
                args={"url": source.fetch_url, "rev": rev, "sha256": source.sha256},
            )


def build_declarations(sources: Iterable[ResolvedSource]) -> list[FetchDeclaration]:
    declarations: list[FetchDeclaration] = []
    used: set[str] = set()
    for source in sources:
        declaration = declaration_for(source)
        name = declaration.name
        suffix = 2
        while name in used:
            name = f"{declaration.name}-{suffix}"
            suffix += 1
        used.add(name)
        if name != declaration.name:
            declaration = FetchDeclaration(
                fetcher=declaration.fetcher,
                name=name,
                args=declaration.args,
            )
        declarations.append(declaration)
    return declarations


def render_nix(declarations: Sequence[FetchDeclaration]) -> str:
    return PREAMBLE + "".join(_render_declaration(item) for item in declarations) + POSTAMBLE


def emit_nix(sources: Iterable[ResolvedSource]) -> str:
    return render_nix(build_declarations(sources))


def _render_declaration(declaration: FetchDeclaration) -> str:
    lines = [
        "",
        "    {",
        f"      name = {nix_string(declaration.name)};",
        f"      path = {declaration.fetcher.value} {{",
    ]
    lines.extend(f"        {key} = {nix_string(value)};" for key, value in declaration.args.items())
    lines.extend(["      };", "    }"])
    return "\n".join(lines)
