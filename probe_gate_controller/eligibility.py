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

from kubernetes.client import V1Pod

from probe_gate_controller.app.config import READINESS_GATE_NAME
from probe_gate_controller.models.status import ConditionStatusEnum


def already_marked(pod: V1Pod) -> bool:
    conditions = pod.status.conditions if pod.status else None
    for condition in conditions or []:
        if condition.type == READINESS_GATE_NAME and condition.status == ConditionStatusEnum.TRUE.value:
            return True
    return False


def belongs_to_this_controller(pod: V1Pod) -> bool:
    readiness_gates = pod.spec.readiness_gates if pod.spec else None
    return any(x.condition_type == READINESS_GATE_NAME for x in readiness_gates or [])


def needs_probe(pod: V1Pod) -> bool:
    """Tell whether the Pod opted in to the probe gate and has not passed it yet."""
    if not pod.spec or not pod.spec.readiness_gates:
        return False
    if already_marked(pod):
        return False
    return belongs_to_this_controller(pod)
