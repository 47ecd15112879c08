import subprocess

import pytest

from kritisgate import kubectl
from kritisgate.kubectl import CommandError
from kritisgate.postinstall import (
    DEPLOYMENT_HOOK_NAME,
    POD_HOOK_NAME,
    PostinstallOptions,
    create_validation_deployment_webhook,
    create_validation_webhook,
    get_ca_bundle,
    main,
    render_deployment_webhook,
    render_pod_webhook,
    run,
)


class FakeRun:
    def __init__(self, secret_output=b"'Q0VSVA=='", fail=False, fail_from=None):
        self.calls = []
        self.secret_output = secret_output
        self.fail = fail
        self.fail_from = fail_from

    def __call__(self, command, **kwargs):
        command = list(command)
        data = kwargs.get("input")
        self.calls.append((command, data))
        failing = self.fail or (
            self.fail_from is not None and len(self.calls) > self.fail_from
        )
        if failing:
            return subprocess.CompletedProcess(command, 1, stdout=b"", stderr=b"boom")
        stdout = self.secret_output if command[1] == "get" else b""
        return subprocess.CompletedProcess(command, 0, stdout=stdout, stderr=b"")


@pytest.fixture
def fake_run(monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


def options():
    return PostinstallOptions(
        webhook_name="hook",
        deployment_webhook_name="hook-deploy",
        service_name="svc",
        tls_secret_name="tls",
        install_label="kritis-install",
        namespace="ns1",
    )


def test_render_pod_webhook_fills_fields():
    text = render_pod_webhook("hook", "lbl", "CA", "svc", "ns1")
    lines = text.splitlines()
    assert lines[0] == "apiVersion: admissionregistration.k8s.io/v1beta1"
    assert "  name: hook" in lines
    assert '    lbl: ""' in lines
    assert "      caBundle: CA" in lines
    assert "        name: svc" in lines
    assert lines[-1] == "        namespace: ns1"
    assert f"  - name: {POD_HOOK_NAME}" in lines
    assert "          - pods" in lines


def test_render_deployment_webhook_covers_replicasets():
    text = render_deployment_webhook("dhook", "lbl", "CA", "svc", "ns1")
    lines = text.splitlines()
    assert "  name: dhook" in lines
    assert f"  - name: {DEPLOYMENT_HOOK_NAME}" in lines
    assert "          - deployments" in lines
    assert "          - replicasets" in lines
    assert "pods" not in text
    assert lines[-1] == "        namespace: ns1"


def test_get_ca_bundle_strips_quotes(fake_run):
    assert get_ca_bundle(options()) == "Q0VSVA=="
    command, _ = fake_run.calls[0]
    assert command == [
        "kubectl",
        "get",
        "secret",
        "tls",
        "-o",
        "jsonpath='{.data.tls\\.crt}'",
        "--namespace",
        "ns1",
    ]


def test_create_validation_webhook_applies_manifest(fake_run, capsys):
    create_validation_webhook(options(), "CA")
    command, data = fake_run.calls[0]
    assert command == ["kubectl", "apply", "-f", "-"]
    expected = render_pod_webhook("hook", "kritis-install", "CA", "svc", "ns1")
    assert data == expected.encode("utf-8")
    assert capsys.readouterr().out == expected + "\n"


def test_create_deployment_webhook_uses_deployment_name(fake_run):
    create_validation_deployment_webhook(options(), "CA")
    _, data = fake_run.calls[0]
    expected = render_deployment_webhook("hook-deploy", "kritis-install", "CA", "svc", "ns1")
    assert data == expected.encode("utf-8")


def test_run_sequence(monkeypatch):
    # The third command (the deployment webhook) fails, proving run reached it.
    fake = FakeRun(fail_from=2)
    monkeypatch.setattr(subprocess, "run", fake)
    with pytest.raises(CommandError) as info:
        run(options())
    assert list(info.value.command) == ["kubectl", "apply", "-f", "-"]
    assert [c[0][1] for c in fake.calls] == ["get", "apply", "apply"]
    assert b"caBundle: Q0VSVA==" in fake.calls[1][1]
    assert b"caBundle: Q0VSVA==" in fake.calls[2][1]
    assert b"  name: hook-deploy" in fake.calls[2][1]


def test_run_raises_on_kubectl_failure(monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeRun(fail=True))
    with pytest.raises(CommandError):
        run(options())


def test_main_parses_flags(monkeypatch, tmp_path):
    ns_file = tmp_path / "namespace"
    ns_file.write_text("kritis-ns\n")
    monkeypatch.setattr(kubectl, "SERVICE_ACCOUNT_NAMESPACE", ns_file)
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    status = main(
        [
            "-webhook-name=hook",
            "--deployment-webhook-name",
            "dhook",
            "--service-name=svc",
            "--tls-secret-name=tls",
            "--kritis-install-label=lbl",
        ]
    )
    assert status == 0
    assert fake.calls[0][0][3] == "tls"
    assert fake.calls[0][0][-1] == "kritis-ns"
    assert b"  name: dhook" in fake.calls[2][1]


def test_main_reports_failure(monkeypatch, tmp_path):
    monkeypatch.setattr(kubectl, "SERVICE_ACCOUNT_NAMESPACE", tmp_path / "missing")
    monkeypatch.setattr(subprocess, "run", FakeRun(fail=True))
    assert main([]) == 1