"""ocisign: sign OCI artifacts in remote registries and local OCI layouts.

This package provides:
- ocisign.oci: reference parsing and the registry/layout repositories
- ocisign.signing: resolver, request builder, orchestrator, outcome classifier
- ocisign.signer: local key (JWS) and plugin signers
- ocisign.cli: the ``ocisign`` command

Example:
    $ ocisign sign --key release registry.example.com/net-monitor@sha256:...
    Successfully signed registry.example.com/net-monitor@sha256:...
"""

from __future__ import annotations

__version__ = "0.1.0"

from ocisign.errors import OCISignError

__all__: list[str] = ["OCISignError", "__version__"]
