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

from datetime import datetime
from typing import List, Optional, Tuple

from kubernetes.client import V1PodCondition, V1PodStatus

from probe_gate_controller.app.config import READINESS_GATE_NAME
from probe_gate_controller.models.probe import ProbeResult
from probe_gate_controller.models.status import FAILED_REASON, ConditionStatusEnum


def build_condition(result: ProbeResult, now: datetime) -> V1PodCondition:
    if result.success:
        return V1PodCondition(
            type=READINESS_GATE_NAME,
            status=ConditionStatusEnum.TRUE.value,
            last_probe_time=now,
            last_transition_time=now,
        )
    return V1PodCondition(
        type=READINESS_GATE_NAME,
        status=ConditionStatusEnum.FALSE.value,
        last_probe_time=now,
        last_transition_time=now,
        reason=FAILED_REASON,
        message=result.message,
    )


def get_pod_condition(conditions: Optional[List[V1PodCondition]], condition_type: str) -> Tuple[int, Optional[V1PodCondition]]:
    for i, condition in enumerate(conditions or []):
        if condition.type == condition_type:
            return i, condition
    return -1, None


def merge_pod_condition(conditions: Optional[List[V1PodCondition]], condition: V1PodCondition) -> List[V1PodCondition]:
    """
    Fold `condition` into a copy of `conditions`.

    A condition of a new type is appended. An existing one is replaced in place, keeping its
    last transition time when the status did not change. Neither argument is modified.
    """
    merged = list(conditions or [])
    index, old_condition = get_pod_condition(merged, condition.type)
    if old_condition is None:
        merged.append(condition)
        return merged

    last_transition_time = condition.last_transition_time
    if condition.status == old_condition.status:
        last_transition_time = old_condition.last_transition_time

    merged[index] = V1PodCondition(
        type=condition.type,
        status=condition.status,
        last_probe_time=condition.last_probe_time,
        last_transition_time=last_transition_time,
        reason=condition.reason,
        message=condition.message,
    )
    return merged


def update_pod_condition(status: V1PodStatus, condition: V1PodCondition) -> None:
    status.conditions = merge_pod_condition(status.conditions, condition)
