"""Post-install hook: register the validating admission webhooks."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from string import Template
from typing import Sequence

from kritisgate.api import BUILD_VERSION, COMMIT
from kritisgate.kubectl import (
    KUBECTL,
    CommandError,
    apply_manifest,
    retrieve_namespace,
    run_command,
)

logger = logging.getLogger(__name__)

POD_HOOK_NAME = "kritis-validation-hook.grafeas.io"
DEPLOYMENT_HOOK_NAME = "kritis-validation-hook-deployments.grafeas.io"

_POD_WEBHOOK = Template(
    """\
apiVersion: admissionregistration.k8s.io/v1beta1
kind: ValidatingWebhookConfiguration
metadata:
  name: $name
  labels:
    ${label}: ""
webhooks:
  - name: kritis-validation-hook.grafeas.io
    rules:
      - apiGroups:
          - ""
        apiVersions:
          - v1
        operations:
          - CREATE
          - UPDATE
        resources:
          - pods
    failurePolicy: Fail
    namespaceSelector:
      matchExpressions:
      - {key: kritis-validation, operator: NotIn, values: [disabled]}
    clientConfig:
      caBundle: $ca_bundle
      service:
        name: $service
        namespace: $namespace"""
)

_DEPLOYMENT_WEBHOOK = Template(
    """\
apiVersion: admissionregistration.k8s.io/v1beta1
kind: ValidatingWebhookConfiguration
metadata:
  name: $name
  labels:
    ${label}: ""
webhooks:
  - name: kritis-validation-hook-deployments.grafeas.io
    rules:
      - apiGroups:
        - "*"
        apiVersions:
        - "*"
        operations:
          - CREATE
          - UPDATE
        resources:
          - deployments
          - replicasets
    failurePolicy: Fail
    namespaceSelector:
      matchExpressions:
      - {key: kritis-validation, operator: NotIn, values: [disabled]}
    clientConfig:
      caBundle: $ca_bundle
      service:
        name: $service
        namespace: $namespace"""
)


@dataclass
class PostinstallOptions:
    """Settings of the post-install hook."""

    webhook_name: str = ""
    deployment_webhook_name: str = ""
    service_name: str = ""
    tls_secret_name: str = ""
    install_label: str = ""
    namespace: str = field(default_factory=retrieve_namespace)


def render_pod_webhook(
    name: str, install_label: str, ca_bundle: str, service_name: str, namespace: str
) -> str:
    """The webhook configuration that validates pods."""
    return _POD_WEBHOOK.substitute(
        name=name,
        label=install_label,
        ca_bundle=ca_bundle,
        service=service_name,
        namespace=namespace,
    )


def render_deployment_webhook(
    name: str, install_label: str, ca_bundle: str, service_name: str, namespace: str
) -> str:
    """The webhook configuration that validates deployments and replica sets."""
    return _DEPLOYMENT_WEBHOOK.substitute(
        name=name,
        label=install_label,
        ca_bundle=ca_bundle,
        service=service_name,
        namespace=namespace,
    )


def get_ca_bundle(options: PostinstallOptions) -> str:
    """The base64 certificate stored in the TLS secret."""
    output = run_command(
        [
            KUBECTL,
            "get",
            "secret",
            options.tls_secret_name,
            "-o",
            "jsonpath='{.data.tls\\.crt}'",
            "--namespace",
            options.namespace,
        ]
    )
    certificate = output.decode("utf-8").removeprefix("'").removesuffix("'")
    logger.info("got cert from secret %s: %s", options.tls_secret_name, certificate)
    return certificate


def create_validation_webhook(options: PostinstallOptions, certificate: str) -> None:
    """Apply the pod validation webhook."""
    manifest = render_pod_webhook(
        options.webhook_name,
        options.install_label,
        certificate,
        options.service_name,
        options.namespace,
    )
    print(manifest)
    apply_manifest(manifest)


def create_validation_deployment_webhook(options: PostinstallOptions, certificate: str) -> None:
    """Apply the deployment and replica set validation webhook."""
    manifest = render_deployment_webhook(
        options.deployment_webhook_name,
        options.install_label,
        certificate,
        options.service_name,
        options.namespace,
    )
    print(manifest)
    apply_manifest(manifest)


def run(options: PostinstallOptions) -> None:
    """Carry out the whole post-install sequence."""
    certificate = get_ca_bundle(options)
    create_validation_webhook(options, certificate)
    create_validation_deployment_webhook(options, certificate)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="postinstall", allow_abbrev=False)

    def text(name: str, dest: str, help: str) -> None:
        parser.add_argument(f"-{name}", f"--{name}", dest=dest, default="", help=help)

    text("webhook-name", "webhook_name", "The name of the validation webhook.")
    text(
        "deployment-webhook-name",
        "deployment_webhook_name",
        "The name of the deployment validation webhook.",
    )
    text("service-name", "service_name", "The name of the service for the webhook.")
    text("tls-secret-name", "tls_secret_name", "The name of the kritis tls secret.")
    text(
        "kritis-install-label",
        "install_label",
        "The label to indicate a resource has been created by kritis",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point; returns the exit status."""
    args = _parser().parse_args(argv)
    options = PostinstallOptions(
        webhook_name=args.webhook_name,
        deployment_webhook_name=args.deployment_webhook_name,
        service_name=args.service_name,
        tls_secret_name=args.tls_secret_name,
        install_label=args.install_label,
        namespace=retrieve_namespace(),
    )
    logger.info("running postinstall\nversion %s\ncommit: %s", BUILD_VERSION, COMMIT)
    try:
        run(options)
    except (CommandError, OSError) as err:
        logger.error("postinstall failed: %s", err)
        return 1
    return 0