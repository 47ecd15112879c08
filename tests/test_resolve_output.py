import io
import os
import subprocess

import pytest

from kritisgate.kubectl import CommandError
from kritisgate.resolve_output import (
    CALLER_ENV,
    LOCAL_FLAG_APPLY_ENV,
    LOCAL_FLAG_FILENAME_ENV,
    apply_changes,
    format_results,
    resolve_apply,
    resolve_filepaths,
)

TEST_YAML = """apiVersion: v1
kind: Pod
metadata:
  name: test
spec:
  containers:
  - name: kaniko
    image: %s
"""

DIGEST_IMAGE = (
    "gcr.io/kritis-int-test/resolve-tags-test-image@sha256:"
    "3e2e946cb834c4538b789312d566eb16f4a27734fc6b140a3b3f85baafce965f"
)


def test_format_results_matches_root_command_output(tmp_path):
    name = str(tmp_path / "manifest.yaml")
    contents = TEST_YAML % DIGEST_IMAGE
    expected = f"---{name}---" + "\n" + contents + "\n"
    assert format_results({name: contents}) == expected


def test_format_results_empty():
    assert format_results({}) == ""


def test_resolve_filepaths_uses_plugin_env(tmp_path):
    target = tmp_path / "file.yaml"
    target.write_text("x")
    env = {LOCAL_FLAG_FILENAME_ENV: target.name}
    assert resolve_filepaths([], str(tmp_path), env) == [os.path.join(str(tmp_path), target.name)]


def test_resolve_filepaths_env_overrides_files(tmp_path):
    target = tmp_path / "a.yaml"
    target.write_text("x")
    env = {LOCAL_FLAG_FILENAME_ENV: str(target)}
    assert resolve_filepaths(["other.yaml"], str(tmp_path), env) == [str(target)]


def test_resolve_filepaths_keeps_existing_paths(tmp_path):
    target = tmp_path / "a.yaml"
    target.write_text("x")
    assert resolve_filepaths([str(target)], "/nowhere", {}) == [str(target)]


def test_resolve_filepaths_requires_a_file(tmp_path):
    with pytest.raises(ValueError, match="--filename"):
        resolve_filepaths([], str(tmp_path), {})


def test_resolve_filepaths_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        resolve_filepaths(["missing.yaml"], str(tmp_path), {})


@pytest.mark.parametrize(
    "apply, env, expected",
    [
        (False, {}, False),
        (True, {}, True),
        (False, {LOCAL_FLAG_APPLY_ENV: "true"}, True),
        (False, {LOCAL_FLAG_APPLY_ENV: ""}, False),
    ],
)
def test_resolve_apply(apply, env, expected):
    assert resolve_apply(apply, env) is expected


class FakeKubectl:
    def __init__(self, returncode=0):
        self.calls = []
        self.returncode = returncode

    def __call__(self, command, **kwargs):
        self.calls.append((list(command), kwargs.get("input")))
        return subprocess.CompletedProcess(
            command, self.returncode, stdout=b"pod/test configured", stderr=None
        )


def test_apply_changes_sends_each_manifest(monkeypatch):
    fake = FakeKubectl()
    monkeypatch.setattr(subprocess, "run", fake)
    out = io.StringIO()
    apply_changes({"a": "doc-a", "b": "doc-b"}, out, {CALLER_ENV: "/opt/kubectl"})
    assert fake.calls == [
        (["/opt/kubectl", "apply", "-f", "-"], b"doc-a"),
        (["/opt/kubectl", "apply", "-f", "-"], b"doc-b"),
    ]
    assert out.getvalue() == "pod/test configured\n" * 2


def test_apply_changes_defaults_to_kubectl(monkeypatch):
    fake = FakeKubectl()
    monkeypatch.setattr(subprocess, "run", fake)
    out = io.StringIO()
    apply_changes({"a": "doc"}, out, {})
    assert fake.calls == [(["kubectl", "apply", "-f", "-"], b"doc")]
    assert out.getvalue() == "pod/test configured\n"


def test_apply_changes_raises_on_failure(monkeypatch):
    fake = FakeKubectl(returncode=1)
    monkeypatch.setattr(subprocess, "run", fake)
    out = io.StringIO()
    with pytest.raises(CommandError) as info:
        apply_changes({"a": "doc-a", "b": "doc-b"}, out, {})
    assert info.value.returncode == 1
    assert len(fake.calls) == 1
    assert out.getvalue() == "pod/test configured\n"