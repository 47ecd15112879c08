"""Pre-delete hook: remove the webhooks, TLS secret, CSR and CRDs."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from typing import Sequence

from kritisgate.kubectl import CommandError, delete_object, object_exists, retrieve_namespace

logger = logging.getLogger(__name__)

WEBHOOK_KIND = "validatingwebhookconfiguration"
CRDS = (
    "attestationauthorities.kritis.grafeas.io",
    "imagesecuritypolicies.kritis.grafeas.io",
)


@dataclass
class PredeleteOptions:
    """Settings of the pre-delete hook."""

    webhook_name: str = ""
    deployment_webhook_name: str = ""
    tls_secret_name: str = ""
    csr_name: str = ""
    delete_csr: bool = True
    delete_crd: bool = True
    namespace: str = field(default_factory=retrieve_namespace)


def delete_if_present(kind: str, name: str, namespace: str) -> bool:
    """Delete the object if kubectl can find it; return whether it was deleted."""
    if not object_exists(kind, name, namespace):
        return False
    delete_object(kind, name, namespace)
    return True


def run(options: PredeleteOptions) -> None:
    """Remove everything the install hooks created."""
    ns = options.namespace
    delete_if_present(WEBHOOK_KIND, options.webhook_name, ns)
    delete_if_present(WEBHOOK_KIND, options.deployment_webhook_name, ns)
    delete_if_present("secret", options.tls_secret_name, ns)
    if options.delete_csr:
        delete_if_present("csr", options.csr_name, ns)
    if options.delete_crd:
        for crd in CRDS:
            delete_if_present("crd", crd, ns)


def _flag_bool(text: str) -> bool:
    value = text.lower()
    if value in ("1", "t", "true"):
        return True
    if value in ("0", "f", "false"):
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="predelete", allow_abbrev=False)

    def text(name: str, dest: str, help: str) -> None:
        parser.add_argument(f"-{name}", f"--{name}", dest=dest, default="", help=help)

    def flag(name: str, dest: str, help: str) -> None:
        parser.add_argument(
            f"-{name}",
            f"--{name}",
            dest=dest,
            nargs="?",
            const=True,
            default=True,
            type=_flag_bool,
            help=help,
        )

    text("webhook-name", "webhook_name", "The name of the validation webhook.")
    text("deployment-webhook-name", "deployment_webhook_name", "The name of the validation webhook.")
    text("tls-secret-name", "tls_secret_name", "The name of the kritis tls secret.")
    text("csr-name", "csr_name", "The name of the kritis csr.")
    flag("delete-csr", "delete_csr", "Delete kritis csr")
    flag("delete-crd", "delete_crd", "Delete kritis CRDs")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point; returns the exit status."""
    args = _parser().parse_args(argv)
    options = PredeleteOptions(
        webhook_name=args.webhook_name,
        deployment_webhook_name=args.deployment_webhook_name,
        tls_secret_name=args.tls_secret_name,
        csr_name=args.csr_name,
        delete_csr=args.delete_csr,
        delete_crd=args.delete_crd,
        namespace=retrieve_namespace(),
    )
    try:
        run(options)
    except (CommandError, OSError) as err:
        logger.error("predelete failed: %s", err)
        return 1
    return 0