"""Pre-install hook: certificates, TLS secret and custom resource definitions."""

from __future__ import annotations

import argparse
import base64
import binascii
import json
import logging
import time
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from string import Template
from typing import Sequence

from kritisgate.api import BUILD_VERSION, COMMIT
from kritisgate.kubectl import (
    KUBECTL,
    CommandError,
    apply_manifest,
    delete_object,
    object_exists,
    retrieve_namespace,
    run_command,
)

logger = logging.getLogger(__name__)

REQUEST_FILE = "server.csr"
CERT_FILE = "server.crt"
KEY_FILE = "server-key.pem"
CSR_ATTEMPTS = 20
CSR_DELAY = 0.01
SECRET_ATTEMPTS = 10
SECRET_DELAY = 0.5

_CERT_REQUEST = Template(
    "{\n"
    '"hosts": [\n'
    '    "$service",\n'
    '    "$service.kube-system",\n'
    '    "$service.$namespace",\n'
    '    "$service.$namespace.svc",\n'
    '    "$deployments",\n'
    '    "$deployments.kube-system",\n'
    '    "$deployments.$namespace",\n'
    '    "$deployments.$namespace.svc"\n'
    "\n"
    "],\n"
    '"key": {\n'
    '\t"algo": "ecdsa",\n'
    '\t"size": 256\n'
    "}\n"
    "}"
)

_CSR = Template(
    "apiVersion: certificates.k8s.io/v1beta1\n"
    "kind: CertificateSigningRequest\n"
    "metadata:\n"
    "    name: $name\n"
    "    labels:\n"
    '        ${label}: ""\n'
    "spec:\n"
    "    groups:\n"
    "    - system:authenticated\n"
    "    request: $certificate\n"
    "    usages:\n"
    "    - digital signature\n"
    "    - key encipherment\n"
    "    - server auth"
)

_ATTESTATION_AUTHORITY_CRD = Template(
    "apiVersion: apiextensions.k8s.io/v1beta1\n"
    "kind: CustomResourceDefinition\n"
    "metadata:\n"
    "    name: attestationauthorities.kritis.grafeas.io\n"
    "    labels:\n"
    '        ${label}: ""\n'
    "spec:\n"
    "    group: kritis.grafeas.io\n"
    "    version: v1beta1\n"
    "    scope: Namespaced\n"
    "    names:\n"
    "        plural: attestationauthorities\n"
    "        singular: attestationauthority\n"
    "        kind: AttestationAuthority"
)

_IMAGE_SECURITY_POLICY_CRD = Template(
    "apiVersion: apiextensions.k8s.io/v1beta1\n"
    "kind: CustomResourceDefinition\n"
    "metadata:\n"
    "    name: imagesecuritypolicies.kritis.grafeas.io\n"
    "    labels:\n"
    '        ${label}: ""\n'
    "spec:\n"
    "    group: kritis.grafeas.io\n"
    "    version: v1beta1\n"
    "    scope: Namespaced\n"
    "    names:\n"
    "        kind: ImageSecurityPolicy\n"
    "        plural: imagesecuritypolicies"
)

_KRITIS_CONFIG_CRD = Template(
    "apiVersion: apiextensions.k8s.io/v1beta1\n"
    "kind: CustomResourceDefinition\n"
    "metadata:\n"
    "  name: kritisconfigs.kritis.grafeas.io\n"
    "  labels:\n"
    '      ${label}: ""\n'
    "spec:\n"
    "  group: kritis.grafeas.io\n"
    "  version: v1beta1\n"
    "  scope: Cluster\n"
    "  names:\n"
    "    kind: KritisConfig\n"
    "    plural: kritisconfigs\n"
    "    singular: kritisconfig"
)


@dataclass
class PreinstallOptions:
    """Settings of the pre-install hook."""

    csr_name: str = ""
    tls_secret_name: str = ""
    create_new_csr: bool = True
    service_name: str = ""
    service_name_deployments: str = ""
    install_label: str = ""
    namespace: str = field(default_factory=retrieve_namespace)


def render_cert_request(namespace: str, service_name: str, service_name_deployments: str) -> str:
    """The cfssl key request covering both webhook services."""
    return _CERT_REQUEST.substitute(
        service=service_name, deployments=service_name_deployments, namespace=namespace
    )


def render_csr(name: str, certificate: str, install_label: str) -> str:
    """A CertificateSigningRequest manifest for a base64-encoded request."""
    return _CSR.substitute(name=name, certificate=certificate, label=install_label)


def render_crds(install_label: str) -> list[str]:
    """The custom resource definitions, labelled as installed by kritis."""
    return [
        template.substitute(label=install_label)
        for template in (
            _ATTESTATION_AUTHORITY_CRD,
            _IMAGE_SECURITY_POLICY_CRD,
            _KRITIS_CONFIG_CRD,
        )
    ]


def encode_request_certificate(path: str | PathLike[str]) -> str:
    """Base64 of the certificate request stored at path."""
    return base64.b64encode(Path(path).read_bytes()).decode("ascii")


def decode_certificate(text: str) -> bytes:
    """Decode a base64 certificate, ignoring the quotes jsonpath output carries."""
    cleaned = text.removeprefix("'").removesuffix("'")
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as err:
        raise ValueError(f"couldn't decode cert: {err}") from err


def delete_existing_objects(options: PreinstallOptions) -> None:
    """Remove a stale CSR (when a new one is wanted) and the TLS secret."""
    if options.create_new_csr and object_exists("csr", options.csr_name, options.namespace):
        delete_object("csr", options.csr_name, options.namespace)
    if object_exists("secret", options.tls_secret_name, options.namespace):
        delete_object("secret", options.tls_secret_name, options.namespace)


def csr_exists(options: PreinstallOptions) -> bool:
    """Whether the certificate signing request is already present."""
    return object_exists("csr", options.csr_name, options.namespace)


def create_certificates(options: PreinstallOptions) -> None:
    """Generate a key and certificate request into the working directory."""
    request = render_cert_request(
        options.namespace, options.service_name, options.service_name_deployments
    )
    output = run_command(["cfssl", "genkey", "-"], request)
    run_command(["cfssljson", "-bare", "server"], output)


def create_certificate_signing_request(options: PreinstallOptions) -> None:
    """Submit the generated certificate request to the cluster."""
    certificate = encode_request_certificate(REQUEST_FILE)
    manifest = render_csr(options.csr_name, certificate, options.install_label)
    print(manifest)
    apply_manifest(manifest)


def approve_certificate_signing_request(options: PreinstallOptions) -> None:
    """Approve the submitted certificate signing request."""
    run_command([KUBECTL, "certificate", "approve", options.csr_name])


def wait_for_csr(options: PreinstallOptions) -> str:
    """Poll until the signed certificate is available and return it as printed."""
    command = [
        KUBECTL,
        "get",
        "csr",
        options.csr_name,
        "-o",
        "jsonpath='{.status.certificate}'",
        "--namespace",
        options.namespace,
    ]
    for _ in range(CSR_ATTEMPTS):
        output = run_command(command).decode("utf-8")
        if output.strip().strip("'"):
            return output
        time.sleep(CSR_DELAY)
    raise TimeoutError("csr wasn't generated in time")


def create_tls_secret(options: PreinstallOptions) -> None:
    """Store the signed certificate and key as the webhook's TLS secret."""
    decoded = decode_certificate(wait_for_csr(options).strip())
    Path(CERT_FILE).write_bytes(decoded)
    for attempt in range(SECRET_ATTEMPTS):
        if csr_exists(options):
            break
        if attempt + 1 < SECRET_ATTEMPTS:
            time.sleep(SECRET_DELAY)
    else:
        raise RuntimeError(f"couldn't find csr {options.csr_name!r}")
    run_command(
        [
            KUBECTL,
            "create",
            "secret",
            "tls",
            options.tls_secret_name,
            f"--cert={CERT_FILE}",
            f"--key={KEY_FILE}",
            "--namespace",
            options.namespace,
        ]
    )


def label_tls_secret(options: PreinstallOptions) -> None:
    """Mark the TLS secret as created by kritis."""
    run_command(
        [
            KUBECTL,
            "label",
            "secret",
            options.tls_secret_name,
            f"{options.install_label}=",
            "--namespace",
            options.namespace,
        ]
    )


def install_crds(options: PreinstallOptions) -> None:
    """Apply the custom resource definitions."""
    for crd in render_crds(options.install_label):
        apply_manifest(crd)


def run(options: PreinstallOptions) -> None:
    """Carry out the whole pre-install sequence."""
    delete_existing_objects(options)
    if options.create_new_csr or not csr_exists(options):
        create_certificates(options)
        create_certificate_signing_request(options)
        approve_certificate_signing_request(options)
    create_tls_secret(options)
    label_tls_secret(options)
    install_crds(options)


def _flag_bool(text: str) -> bool:
    value = text.lower()
    if value in ("1", "t", "true"):
        return True
    if value in ("0", "f", "false"):
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="preinstall", allow_abbrev=False)

    def text(name: str, dest: str, help: str) -> None:
        parser.add_argument(f"-{name}", f"--{name}", dest=dest, default="", help=help)

    text("csr-name", "csr_name", "The name of the kritis csr.")
    text("tls-secret-name", "tls_secret_name", "The name of the kritis tls secret.")
    parser.add_argument(
        "-create-new-csr",
        "--create-new-csr",
        dest="create_new_csr",
        nargs="?",
        const=True,
        default=True,
        type=_flag_bool,
        help="Set to false in order to only create a new CSR if one is not present.",
    )
    text("kritis-service-name", "service_name", "The name of the kritis service for pods.")
    text(
        "kritis-service-name-deployments",
        "service_name_deployments",
        "The name of the kritis service for deployments.",
    )
    text(
        "kritis-install-label",
        "install_label",
        "The label to indicate a resource has been created by kritis",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point; returns the exit status."""
    args = _parser().parse_args(argv)
    options = PreinstallOptions(
        csr_name=args.csr_name,
        tls_secret_name=args.tls_secret_name,
        create_new_csr=args.create_new_csr,
        service_name=args.service_name,
        service_name_deployments=args.service_name_deployments,
        install_label=args.install_label,
        namespace=retrieve_namespace(),
    )
    logger.info("running preinstall\nversion %s\ncommit: %s", BUILD_VERSION, COMMIT)
    try:
        run(options)
    except (CommandError, OSError, RuntimeError, ValueError) as err:
        logger.error("preinstall failed: %s", err)
        return 1
    return 0