"""Manifest emitters."""

from yarn2nix.compiler.emit_nix import (
    FetchDeclaration,
    Fetcher,
    build_declarations,
    emit_nix,
    nix_string,
    render_nix,
)

__all__ = [
    "FetchDeclaration",
    "Fetcher",
    "build_declarations",
    "emit_nix",
    "nix_string",
    "render_nix",
]
