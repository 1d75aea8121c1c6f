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

from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client import V1Pod
from kubernetes.client.rest import ApiException

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


def load_kube_config(kubeconfig: Optional[str] = None):
    try:
        k8s_config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except k8s_config.ConfigException:
        k8s_config.load_kube_config(config_file=kubeconfig)
        logger.info(f"Loaded Kubernetes configuration from kubeconfig '{kubeconfig or 'default'}'")


class StatusUpdateError(Exception):

    def __init__(self, namespace: str, name: str, reason: str):
        self.namespace = namespace
        self.name = name
        self.reason = reason
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"Failed to update status of Pod '{self.namespace}/{self.name}': {self.reason}"


class StatusConflictError(StatusUpdateError):
    """The Pod changed since it was read. Retrying the reconciliation with a fresh read resolves it."""


class PodClient:

    def __init__(self, core_v1: Optional[client.CoreV1Api] = None) -> None:
        self.core_v1 = core_v1 if core_v1 else client.CoreV1Api()

    def get_pod(self, namespace: str, name: str) -> Optional[V1Pod]:
        try:
            return self.core_v1.read_namespaced_pod(name, namespace)
        except ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise e

    def update_pod_status(self, pod: V1Pod) -> V1Pod:
        namespace = pod.metadata.namespace
        name = pod.metadata.name
        try:
            return self.core_v1.replace_namespaced_pod_status(name, namespace, pod)
        except ApiException as e:
            if e.status == HTTP_CONFLICT:
                raise StatusConflictError(namespace, name, e.reason) from e
            raise StatusUpdateError(namespace, name, f"{e.status} {e.reason}") from e
