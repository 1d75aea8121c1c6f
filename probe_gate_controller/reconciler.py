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
from typing import Optional

from kubernetes.client import V1PodStatus

from probe_gate_controller.app.utils import get_timestamp
from probe_gate_controller.common.kube_client import PodClient
from probe_gate_controller.conditions import build_condition, update_pod_condition
from probe_gate_controller.eligibility import needs_probe
from probe_gate_controller.models.reconcile import ReconcileRequest
from probe_gate_controller.observer import DEFAULT_OBSERVER, Observer
from probe_gate_controller.probe_executor import ProbeExecutor

logger = logging.getLogger(__name__)


class PodProbeReconciler:
    """
    Probe Pods that declare the probe-200-only readiness gate and record the outcome
    as the Pod condition of the same type.

    `reconcile` returns normally when there is nothing to do or the status was written.
    Errors reading or writing the Pod are raised so that the caller requeues the request;
    a failing probe is not an error.
    """

    def __init__(
        self,
        pod_client: PodClient,
        probe_executor: Optional[ProbeExecutor] = None,
        observer: Optional[Observer] = None,
        _logger: Optional[logging.Logger] = None,
    ) -> None:
        self.pod_client = pod_client
        self.probe_executor = probe_executor if probe_executor else ProbeExecutor()
        self.observer = observer if observer else DEFAULT_OBSERVER
        self.logger = _logger if _logger else logger

    def reconcile(self, request: ReconcileRequest) -> None:
        logger = self.logger

        pod = self.pod_client.get_pod(request.namespace, request.name)
        if pod is None:
            logger.debug(f"Pod '{request}' is not found. Nothing to do.")
            return

        if not needs_probe(pod):
            return

        result = self.probe_executor.probe(pod)
        self.observer.notify("reconcile:probe:end", {"pod": str(request), "result": result})

        condition = build_condition(result, get_timestamp())
        if pod.status is None:
            pod.status = V1PodStatus()
        update_pod_condition(pod.status, condition)

        self.pod_client.update_pod_status(pod)
        self.observer.notify("reconcile:status:updated", {"pod": str(request), "status": condition.status, "reason": condition.reason})
        if result.success:
            logger.info(f"Pod '{request}' passed the probe")
        else:
            logger.info(f"Pod '{request}' failed the probe: {result.message}")
