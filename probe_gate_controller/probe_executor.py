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

import logging
import threading
import time
from typing import Optional, Tuple
from urllib.parse import urljoin

import requests
import urllib3
from kubernetes.client import V1Container, V1Pod, V1Probe
from requests.adapters import HTTPAdapter
from urllib3.exceptions import InsecureRequestWarning

from probe_gate_controller.app.config import (
    DEFAULT_PROBE_PATH,
    DEFAULT_PROBE_PORT,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    PROBE_DRAIN_CHUNK_SIZE,
    PROBE_IDLE_CONNECTION_TIMEOUT_SECONDS,
    PROBE_MAX_DRAIN_BYTES,
    PROBE_MAX_REDIRECTS,
    PROBE_POOL_MAXSIZE,
)
from probe_gate_controller.models.probe import ProbeResult, ProbeSchemeEnum, ProbeTarget

# Probe targets are in-cluster endpoints, usually with self-signed certificates.
urllib3.disable_warnings(InsecureRequestWarning)

logger = logging.getLogger(__name__)

_probe_session: Optional[requests.Session] = None
_probe_session_lock = threading.Lock()


class IdleTimeoutHTTPAdapter(HTTPAdapter):
    """HTTPAdapter that discards its pooled connections once it has been idle for `idle_timeout` seconds."""

    def __init__(self, idle_timeout: float = PROBE_IDLE_CONNECTION_TIMEOUT_SECONDS, **kwargs):
        self.idle_timeout = idle_timeout
        self._last_used = time.monotonic()
        self._idle_lock = threading.Lock()
        super().__init__(**kwargs)

    def send(self, request, **kwargs):
        with self._idle_lock:
            now = time.monotonic()
            if now - self._last_used > self.idle_timeout:
                logger.debug(f"Probe connections were idle for more than {self.idle_timeout}s. Dropping pooled connections.")
                self.poolmanager.clear()
            self._last_used = now
        return super().send(request, **kwargs)


def new_probe_session() -> requests.Session:
    session = requests.Session()
    session.verify = False
    adapter = IdleTimeoutHTTPAdapter(
        idle_timeout=PROBE_IDLE_CONNECTION_TIMEOUT_SECONDS,
        pool_connections=PROBE_POOL_MAXSIZE,
        pool_maxsize=PROBE_POOL_MAXSIZE,
        max_retries=0,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def get_probe_session() -> requests.Session:
    """Return the process-wide session shared by every probe. It is created on first use and never closed."""
    global _probe_session
    with _probe_session_lock:
        if _probe_session is None:
            _probe_session = new_probe_session()
        return _probe_session


def select_probe(container: V1Container) -> Optional[V1Probe]:
    if container.readiness_probe:
        return container.readiness_probe
    return container.liveness_probe


def build_probe_target(pod: V1Pod) -> ProbeTarget:
    host = pod.status.pod_ip if pod.status and pod.status.pod_ip else ""
    port = DEFAULT_PROBE_PORT
    path = DEFAULT_PROBE_PATH
    scheme = ProbeSchemeEnum.HTTP
    timeout = DEFAULT_PROBE_TIMEOUT_SECONDS

    containers = pod.spec.containers if pod.spec else None
    if containers:
        container = containers[0]
        if container.ports:
            port = container.ports[0].container_port
        probe = select_probe(container)
        if probe:
            if probe.timeout_seconds and probe.timeout_seconds > 0:
                timeout = probe.timeout_seconds
            if probe.http_get:
                if probe.http_get.path:
                    path = probe.http_get.path
                if probe.http_get.scheme and probe.http_get.scheme.upper() == "HTTPS":
                    scheme = ProbeSchemeEnum.HTTPS

    return ProbeTarget(scheme=scheme, host=host, port=port, path=path, timeout=timeout)


class ProbeExecutor:

    def __init__(self, session: Optional[requests.Session] = None, _logger: Optional[logging.Logger] = None) -> None:
        self.session = session if session else get_probe_session()
        self.logger = _logger if _logger else logger

    def probe(self, pod: V1Pod) -> ProbeResult:
        return self.probe_target(build_probe_target(pod))

    def probe_target(self, target: ProbeTarget) -> ProbeResult:
        """
        GET the target, following redirects, and classify the final response.

        The whole exchange, redirects and body included, must finish within `target.timeout`.
        """
        logger = self.logger

        url = target.url
        deadline = time.monotonic() + target.timeout
        logger.debug(f"Probe '{url}' (timeout {target.timeout}s)...")
        try:
            for _ in range(PROBE_MAX_REDIRECTS + 1):
                status_code, location = self.get_once(url, deadline)
                if not location:
                    break
                url = urljoin(url, location)
            else:
                return ProbeResult(success=False, message=f"stopped after {PROBE_MAX_REDIRECTS} redirects")
        except ProbeDeadlineExceeded:
            logger.debug(f"Probe '{url}' timed out")
            return ProbeResult(success=False, message=f"timeout after {target.timeout}s waiting for '{url}'")
        except (requests.exceptions.RequestException, urllib3.exceptions.HTTPError) as e:
            logger.debug(f"Probe '{url}' failed: {e}")
            return ProbeResult(success=False, message=str(e))

        if status_code != 200:
            logger.debug(f"Probe '{url}' answered with status code {status_code}")
            return ProbeResult(success=False, message=f"unexpected status code {status_code}", status_code=status_code)
        return ProbeResult(success=True, status_code=status_code)

    def get_once(self, url: str, deadline: float) -> Tuple[int, Optional[str]]:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ProbeDeadlineExceeded()
        # Leaving the block closes the response and hands the connection back to the pool.
        with self.session.get(url, timeout=remaining, verify=False, stream=True, allow_redirects=False) as response:
            drain(response, deadline)
            return response.status_code, self.session.get_redirect_target(response)


class ProbeDeadlineExceeded(Exception):
    pass


def drain(response: requests.Response, deadline: float):
    """Read and discard at most PROBE_MAX_DRAIN_BYTES of the body, raising ProbeDeadlineExceeded once `deadline` passes."""
    read = 0
    while read < PROBE_MAX_DRAIN_BYTES:
        if time.monotonic() > deadline:
            raise ProbeDeadlineExceeded()
        chunk = response.raw.read1(PROBE_DRAIN_CHUNK_SIZE, decode_content=False)
        if not chunk:
            return
        read += len(chunk)
    if time.monotonic() > deadline:
        raise ProbeDeadlineExceeded()
