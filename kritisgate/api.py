"""Resource types of the kritis.grafeas.io API group and shared constants."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Mapping, NamedTuple

GROUP_NAME = "kritis.grafeas.io"
VERSION = "v1beta1"
API_VERSION = f"{GROUP_NAME}/{VERSION}"

# Build information, replaced at release time.
COMMIT = "undefined"
BUILD_VERSION = "undefined"


class Status(str, Enum):
    """Value of the status field of an admission result."""

    SUCCESS = "Success"
    FAILURE = "Failure"


SUCCESS_MESSAGE = "Successfully admitted."
RSA_BITS = 4096

POD = "Pod"
REPLICA_SET = "ReplicaSet"
DEPLOYMENT = "Deployment"
SUPPORTED_TYPES = (POD, REPLICA_SET, DEPLOYMENT)

GRAFEAS_METADATA = "grafeas"
CONTAINER_ANALYSIS_METADATA = "containerAnalysis"

# Document key naming the Kubernetes object that holds the signing key.
_SIGNING_KEY_REF_FIELD = "privateKeySecretName"


class GroupKind(NamedTuple):
    group: str
    kind: str


class GroupResource(NamedTuple):
    group: str
    resource: str


def kind(kind: str) -> GroupKind:
    """Qualify an unqualified kind with the API group."""
    return GroupKind(GROUP_NAME, kind)


def resource(resource: str) -> GroupResource:
    """Qualify an unqualified resource with the API group."""
    return GroupResource(GROUP_NAME, resource)


def _scalar(key: str) -> Any:
    return field(default="", metadata={"key": key, "type": str})


def _strings(key: str) -> Any:
    return field(default_factory=list, metadata={"key": key, "type": list})


def _nested(key: str, cls: type) -> Any:
    return field(default_factory=cls, metadata={"key": key, "type": cls})


def _load(cls: type, data: Any, where: str) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError(f"{where}: expected an object, got {type(data).__name__}")
    values: dict[str, Any] = {}
    for f in fields(cls):
        key = f.metadata["key"]
        raw = data.get(key)
        if raw is None:
            continue
        expected = f.metadata["type"]
        path = f"{where}.{key}"
        if expected is str:
            if not isinstance(raw, str):
                raise ValueError(f"{path}: expected a string")
            values[f.name] = raw
        elif expected is list:
            if not isinstance(raw, list) or not all(isinstance(i, str) for i in raw):
                raise ValueError(f"{path}: expected a list of strings")
            values[f.name] = list(raw)
        else:
            values[f.name] = _load(expected, raw, path)
    return cls(**values)


def _dump(obj: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        expected = f.metadata["type"]
        if expected is list:
            value = list(value)
        elif expected is not str:
            value = _dump(value)
        out[f.metadata["key"]] = value
    return out


def _optional_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"metadata.{key}: expected a string")
    return value


def _string_map(data: Mapping[str, Any], key: str) -> dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ValueError(f"metadata.{key}: expected a map of strings")
    return dict(value)


@dataclass
class ObjectMeta:
    """The parts of object metadata the admission logic relies on."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_references: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ObjectMeta:
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("metadata: expected an object")
        refs = data.get("ownerReferences") or []
        if not isinstance(refs, list) or not all(isinstance(r, Mapping) for r in refs):
            raise ValueError("metadata.ownerReferences: expected a list of objects")
        return cls(
            name=_optional_str(data, "name"),
            namespace=_optional_str(data, "namespace"),
            labels=_string_map(data, "labels"),
            annotations=_string_map(data, "annotations"),
            owner_references=[dict(r) for r in refs],
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.name:
            out["name"] = self.name
        if self.namespace:
            out["namespace"] = self.namespace
        if self.labels:
            out["labels"] = dict(self.labels)
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        if self.owner_references:
            out["ownerReferences"] = [dict(r) for r in self.owner_references]
        return out


def _resource_from_dict(cls: type, spec_type: type, data: Any) -> Any:
    """Build a custom resource of ``cls`` from its document form."""
    resource_kind = cls.KIND  # type: ignore[attr-defined]
    if not isinstance(data, Mapping):
        raise ValueError(f"{resource_kind}: expected an object")
    doc_kind = data.get("kind")
    if doc_kind and doc_kind != resource_kind:
        raise ValueError(f"expected kind {resource_kind!r}, got {doc_kind!r}")
    spec = data.get("spec")
    return cls(
        metadata=ObjectMeta.from_dict(data.get("metadata")),
        spec=_load(spec_type, {} if spec is None else spec, "spec"),
    )


def _resource_to_dict(obj: Any) -> dict[str, Any]:
    return {
        "apiVersion": API_VERSION,
        "kind": obj.KIND,
        "metadata": obj.metadata.to_dict(),
        "spec": _dump(obj.spec),
    }


@dataclass
class AttestationAuthoritySpec:
    note_reference: str = _scalar("noteReference")
    private_key_secret_name: str = _scalar(_SIGNING_KEY_REF_FIELD)
    public_key_data: str = _scalar("publicKeyData")
    policy_type: str = _scalar("policyType")


@dataclass
class AttestationAuthority:
    KIND: ClassVar[str] = "AttestationAuthority"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: AttestationAuthoritySpec = field(default_factory=AttestationAuthoritySpec)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AttestationAuthority:
        return _resource_from_dict(cls, AttestationAuthoritySpec, data)

    def to_dict(self) -> dict[str, Any]:
        return _resource_to_dict(self)


@dataclass
class BuildRequirements:
    built_from: str = _scalar("builtFrom")


@dataclass
class BuildPolicySpec:
    attestation_authority_name: str = _scalar("attestationAuthorityName")
    build_requirements: BuildRequirements = _nested("buildRequirements", BuildRequirements)


@dataclass
class BuildPolicy:
    KIND: ClassVar[str] = "BuildPolicy"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: BuildPolicySpec = field(default_factory=BuildPolicySpec)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BuildPolicy:
        return _resource_from_dict(cls, BuildPolicySpec, data)

    def to_dict(self) -> dict[str, Any]:
        return _resource_to_dict(self)


@dataclass
class GrafeasConfigSpec:
    """Connection settings for a Grafeas server."""

    addr: str = _scalar("addr")
    ca_path: str = _scalar("caPath")
    client_key_path: str = _scalar("clientKeyPath")
    client_cert_path: str = _scalar("clientCertPath")


@dataclass
class KritisConfigSpec:
    metadata_backend: str = _scalar("metadataBackend")
    cron_interval: str = _scalar("cronInterval")
    server_addr: str = _scalar("serverAddr")
    grafeas: GrafeasConfigSpec = _nested("grafeas", GrafeasConfigSpec)
    image_whitelist: list[str] = _strings("imageWhitelist")


@dataclass
class KritisConfig:
    KIND: ClassVar[str] = "KritisConfig"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: KritisConfigSpec = field(default_factory=KritisConfigSpec)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> KritisConfig:
        return _resource_from_dict(cls, KritisConfigSpec, data)

    def to_dict(self) -> dict[str, Any]:
        return _resource_to_dict(self)


@dataclass
class PackageVulnerabilityRequirements:
    maximum_severity: str = _scalar("maximumSeverity")
    maximum_fix_unavailable_severity: str = _scalar("maximumFixNotAvailableSeverity")
    whitelist_cves: list[str] = _strings("whitelistCVEs")


@dataclass
class ImageSecurityPolicySpec:
    image_whitelist: list[str] = _strings("imageWhitelist")
    package_vulnerability_requirements: PackageVulnerabilityRequirements = _nested(
        "packageVulnerabilityRequirements", PackageVulnerabilityRequirements
    )
    attestation_authority_names: list[str] = _strings("attestationAuthorityNames")
    built_project_ids: list[str] = _strings("builtProjectIDs")
    require_attestations_by: list[str] = _strings("requireAttestationsBy")


@dataclass
class ImageSecurityPolicy:
    KIND: ClassVar[str] = "ImageSecurityPolicy"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ImageSecurityPolicySpec = field(default_factory=ImageSecurityPolicySpec)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ImageSecurityPolicy:
        return _resource_from_dict(cls, ImageSecurityPolicySpec, data)

    def to_dict(self) -> dict[str, Any]:
        return _resource_to_dict(self)


KNOWN_TYPES: dict[str, type] = {
    cls.KIND: cls
    for cls in (ImageSecurityPolicy, BuildPolicy, AttestationAuthority, KritisConfig)
}