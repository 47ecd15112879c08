# kritisgate

Tooling for image admission control in Kubernetes: the hooks that
install and remove the validating webhooks, TLS secret and custom
resource definitions, the custom resource types themselves, and the
printing or applying of manifests whose image tags have been resolved.

## Installation

```sh
pip install kritisgate
```

Everything that talks to the cluster goes through `kubectl`, which must
be on the `PATH`. The preinstall hook also needs `cfssl` and
`cfssljson` to generate the server key and certificate request.

## Install and removal hooks

Three commands are meant to run as Helm hook jobs. Each accepts its
options with one or two leading dashes (`-csr-name` or `--csr-name`),
works in the namespace given by `kritisgate.kubectl.retrieve_namespace()`
(the pod's service-account namespace, or `default` outside a cluster),
and exits with status 1 when a step fails.

### `kritisgate-preinstall`

Deletes an existing certificate signing request (when a new one is
wanted) and TLS secret, generates a key and certificate request with
`cfssl genkey` / `cfssljson -bare server`, submits and approves the CSR,
waits for the signed certificate, writes it to `server.crt`, creates the
TLS secret from `server.crt` and `server-key.pem`, labels the secret and
applies the `AttestationAuthority`, `ImageSecurityPolicy` and
`KritisConfig` resource definitions.

```sh
kritisgate-preinstall \
    --csr-name tls-webhook-secret-cert \
    --tls-secret-name tls-webhook-secret \
    --kritis-service-name kritis-validation-hook \
    --kritis-service-name-deployments kritis-validation-hook-deployments \
    --kritis-install-label kritis.grafeas.io/install
```

`--create-new-csr` is on by default; pass `--create-new-csr=false` to
reuse a CSR that is already present. The files are written to the
current directory.

### `kritisgate-postinstall`

Reads the CA bundle from the TLS secret and applies two
`ValidatingWebhookConfiguration` objects: one for Pods and one for
Deployments and ReplicaSets. Namespaces labelled
`kritis-validation=disabled` are excluded. Each manifest is also printed.

```sh
kritisgate-postinstall \
    --webhook-name kritis-validation-hook \
    --deployment-webhook-name kritis-validation-hook-deployments \
    --service-name kritis-validation-hook \
    --tls-secret-name tls-webhook-secret \
    --kritis-install-label kritis.grafeas.io/install
```

### `kritisgate-predelete`

Removes both webhooks and the TLS secret, and also the CSR and the
`attestationauthorities` and `imagesecuritypolicies` resource
definitions unless `--delete-csr=false` or `--delete-crd=false` is given.
Objects that `kubectl get` cannot find are skipped.

```sh
kritisgate-predelete \
    --webhook-name kritis-validation-hook \
    --deployment-webhook-name kritis-validation-hook-deployments \
    --tls-secret-name tls-webhook-secret \
    --csr-name tls-webhook-secret-cert
```

The steps are also available as functions: `kritisgate.preinstall.run`,
`kritisgate.postinstall.run` and `kritisgate.predelete.run` take a
`PreinstallOptions`, `PostinstallOptions` or `PredeleteOptions`
dataclass. The manifests can be rendered without touching a cluster with
`render_cert_request`, `render_csr` and `render_crds` (preinstall) and
`render_pod_webhook` and `render_deployment_webhook` (postinstall).

## Library use

### Resource types

`kritisgate.api` holds the custom resources of the `kritis.grafeas.io`
group as dataclasses: `ImageSecurityPolicy`, `AttestationAuthority`,
`BuildPolicy` and `KritisConfig`, with their specs and `ObjectMeta`.
Each has `from_dict`, which raises `ValueError` on a document of the
wrong shape or kind, and `to_dict`, which produces the API server's JSON
shape.

```python
from kritisgate.api import ImageSecurityPolicy

isp = ImageSecurityPolicy.from_dict(document)
isp.spec.package_vulnerability_requirements.maximum_severity
```

`kind()` and `resource()` qualify a name with the group, returning a
`GroupKind` or `GroupResource`. The module also defines the admission
`Status` values, the supported workload kinds and the names of the
metadata backends.

### Running kubectl

`kritisgate.kubectl` offers `run_command` (returns stdout, raises
`CommandError` on failure), `object_exists`, `delete_object`,
`apply_manifest` and `retrieve_namespace`.

### Resolved manifests

`kritisgate.resolve_output` handles the input and output side of
replacing image tags with digests:

- `resolve_filepaths(files, relative_dir, env)` takes the filename from
  `KUBECTL_PLUGINS_LOCAL_FLAG_FILENAME` when it is set, otherwise the
  files given; a path that does not exist is joined to `relative_dir`.
  It raises `ValueError` when no file is given and `FileNotFoundError`
  when the joined path does not exist either.
- `resolve_apply(apply, env)` is true when `apply` is set or
  `KUBECTL_PLUGINS_LOCAL_FLAG_APPLY` is non-empty.
- `format_results(substitutes)` renders each file as a `---<path>---`
  line followed by its contents.
- `apply_changes(substitutes, out, env)` pipes each manifest to
  `kubectl apply -f -`, using the binary named in
  `KUBECTL_PLUGINS_CALLER` when set, and copies kubectl's output to `out`.

## What this package does not do

It contains no admission webhook server and does not itself review the
images of Pods, Deployments or ReplicaSets against image security
policies; the webhooks it registers must be served by something else.
Nor does it look up image digests: `kritisgate.resolve_output` only
handles manifests that have already been resolved, and there is no
`resolve-tags` command.

## Running the tests

```sh
pip install "kritisgate[test]"
pytest
```