# Copyright contributors to the ITBench project. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import time

import pytest
import requests
from kubernetes.client import V1ExecAction, V1Probe

import probe_gate_controller.probe_executor
from probe_gate_controller.app.config import PROBE_DRAIN_CHUNK_SIZE
from probe_gate_controller.models.probe import ProbeSchemeEnum, ProbeTarget
from probe_gate_controller.probe_executor import (
    IdleTimeoutHTTPAdapter,
    ProbeDeadlineExceeded,
    ProbeExecutor,
    build_probe_target,
    drain,
    get_probe_session,
)
from tests import pods


def test_target_from_readiness_probe():
    pod = pods.opted_in(containers=[pods.container(ports=[9000], readiness_probe=pods.http_probe("/health", "HTTPS", 3))])
    target = build_probe_target(pod)
    assert target.url == "https://10.0.0.1:9000/health"
    assert target.timeout == 3


def test_target_defaults():
    pod = pods.opted_in(containers=[pods.container()])
    target = build_probe_target(pod)
    assert target.url == "http://10.0.0.1:8888/"
    assert target.scheme == ProbeSchemeEnum.HTTP
    assert target.timeout == 30


def test_target_uses_first_container_and_first_port():
    pod = pods.opted_in(
        containers=[
            pods.container(ports=[7000, 7001]),
            pods.container(ports=[9000], readiness_probe=pods.http_probe("/other")),
        ]
    )
    assert build_probe_target(pod).url == "http://10.0.0.1:7000/"


def test_target_falls_back_to_liveness_probe():
    pod = pods.opted_in(containers=[pods.container(ports=[8080], liveness_probe=pods.http_probe("/alive", "HTTPS", 5))])
    target = build_probe_target(pod)
    assert target.url == "https://10.0.0.1:8080/alive"
    assert target.timeout == 5


def test_target_prefers_readiness_over_liveness_probe():
    pod = pods.opted_in(
        containers=[
            pods.container(
                ports=[8080],
                readiness_probe=pods.http_probe("/ready"),
                liveness_probe=pods.http_probe("/alive", "HTTPS"),
            )
        ]
    )
    assert build_probe_target(pod).url == "http://10.0.0.1:8080/ready"


def test_target_with_non_http_probe():
    probe = V1Probe(_exec=V1ExecAction(command=["true"]), timeout_seconds=7)
    pod = pods.opted_in(containers=[pods.container(ports=[8080], readiness_probe=probe)])
    target = build_probe_target(pod)
    assert target.url == "http://10.0.0.1:8080/"
    assert target.timeout == 7


def test_target_with_empty_path_and_no_timeout():
    pod = pods.opted_in(containers=[pods.container(readiness_probe=pods.http_probe(path=""))])
    target = build_probe_target(pod)
    assert target.url == "http://10.0.0.1:8888/"
    assert target.timeout == 30


def test_target_without_containers():
    pod = pods.opted_in(containers=[])
    assert build_probe_target(pod).url == "http://10.0.0.1:8888/"


def probe_pod(http_server, path: str):
    host, port = http_server
    pod = pods.opted_in(pod_ip=host, containers=[pods.container(ports=[port], readiness_probe=pods.http_probe(path, timeout_seconds=5))])
    return ProbeExecutor().probe(pod)


def test_probe_success(http_server):
    result = probe_pod(http_server, "/status/200")
    assert result.success
    assert result.status_code == 200
    assert result.message is None


def test_probe_unexpected_status(http_server):
    for code in [500, 404, 204]:
        result = probe_pod(http_server, f"/status/{code}")
        assert not result.success
        assert result.status_code == code
        assert str(code) in result.message


def test_probe_follows_redirect(http_server):
    assert probe_pod(http_server, "/redirect").success


def test_probe_connection_refused(closed_port):
    target = ProbeTarget(host="127.0.0.1", port=closed_port, path="/", timeout=5)
    result = ProbeExecutor().probe_target(target)
    assert not result.success
    assert result.status_code is None
    assert "Connection refused" in result.message or "NewConnectionError" in result.message


def test_probe_slow_body_is_bounded_by_timeout(http_server):
    host, port = http_server
    target = ProbeTarget(host=host, port=port, path="/drip", timeout=1)
    start = time.monotonic()
    result = ProbeExecutor().probe_target(target)
    elapsed = time.monotonic() - start
    assert not result.success
    assert "timeout" in result.message
    assert elapsed < 2.5


def test_probe_large_body(http_server):
    result = probe_pod(http_server, "/large")
    assert result.success
    assert result.status_code == 200


def test_probe_redirect_loop(http_server):
    result = probe_pod(http_server, "/loop")
    assert not result.success
    assert "redirects" in result.message


def test_drain_reads_at_most_the_limit(monkeypatch):
    class FakeRaw:
        def __init__(self):
            self.read = 0

        def read1(self, amt, decode_content=None):
            self.read += amt
            return b"x" * amt

    class FakeResponse:
        raw = FakeRaw()

    response = FakeResponse()
    monkeypatch.setattr(probe_gate_controller.probe_executor, "PROBE_MAX_DRAIN_BYTES", 10000)
    drain(response, time.monotonic() + 60)
    assert 10000 <= response.raw.read < 10000 + PROBE_DRAIN_CHUNK_SIZE


def test_drain_after_deadline():
    with pytest.raises(ProbeDeadlineExceeded):
        drain(None, time.monotonic() - 1)


def test_probe_without_pod_ip():
    result = ProbeExecutor().probe(pods.opted_in(pod_ip=None))
    assert not result.success
    assert result.message


def test_probe_session_is_shared():
    session = get_probe_session()
    assert session is get_probe_session()
    assert ProbeExecutor().session is session
    assert session.verify is False
    assert isinstance(session.get_adapter("https://10.0.0.1:8443/"), IdleTimeoutHTTPAdapter)


def test_idle_adapter_drops_pooled_connections(http_server, monkeypatch):
    host, port = http_server
    adapter = IdleTimeoutHTTPAdapter(idle_timeout=60)
    session = requests.Session()
    session.mount("http://", adapter)

    cleared = []
    monkeypatch.setattr(adapter.poolmanager, "clear", lambda: cleared.append(True))

    adapter._last_used -= 120
    session.get(f"http://{host}:{port}/", timeout=5).close()
    assert len(cleared) == 1

    session.get(f"http://{host}:{port}/", timeout=5).close()
    assert len(cleared) == 1
