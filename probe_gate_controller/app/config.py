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

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

READINESS_GATE_NAME = "kubernetes-router.tsuru.io/probe-200-only"

DEFAULT_PROBE_PORT = 8888
DEFAULT_PROBE_PATH = "/"
DEFAULT_PROBE_TIMEOUT_SECONDS = 30

PROBE_POOL_MAXSIZE = 100
PROBE_IDLE_CONNECTION_TIMEOUT_SECONDS = 10
PROBE_MAX_REDIRECTS = 10
# Larger bodies are not read; the connection is closed instead of going back to the pool.
PROBE_MAX_DRAIN_BYTES = 64 * 1024
PROBE_DRAIN_CHUNK_SIZE = 4096

DEFAULT_MAX_CONCURRENT_RECONCILES = 100
DEFAULT_RESYNC_PERIOD_SECONDS = 300
DEFAULT_REQUEUE_AFTER_ERROR_SECONDS = 5
DEFAULT_WATCH_RETRY_INTERVAL_SECONDS = 5

PROJECT_LOG_LEVEL = os.getenv("PROJECT_LOG_LEVEL", "")
ROOT_LOG_LEVEL = os.getenv("ROOT_LOG_LEVEL", "")


class ControllerConfig(BaseSettings):
    namespace: Optional[str] = Field(None, description="Namespace to watch for Pods. Default is every namespace.")
    kubeconfig: Optional[str] = Field(
        None, description="Path to the kubeconfig file. Used only when the in-cluster configuration is not available."
    )
    max_concurrent_reconciles: int = Field(
        DEFAULT_MAX_CONCURRENT_RECONCILES, gt=0, description="Maximum number of Pods reconciled at the same time. Default is 100."
    )
    resync_period_seconds: int = Field(
        DEFAULT_RESYNC_PERIOD_SECONDS,
        gt=0,
        description="Seconds after which the Pod watch is restarted and every Pod is delivered again. Default is 300.",
    )
    requeue_after_error_seconds: int = Field(
        DEFAULT_REQUEUE_AFTER_ERROR_SECONDS, ge=0, description="Seconds to wait before retrying a failed reconciliation. Default is 5."
    )
    watch_retry_interval_seconds: int = Field(
        DEFAULT_WATCH_RETRY_INTERVAL_SECONDS, ge=0, description="Seconds to wait before restarting a failed Pod watch. Default is 5."
    )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_prefix="PROBE_GATE_")


def load_config(config_path: Optional[str] = None) -> ControllerConfig:
    if not config_path:
        return ControllerConfig()
    with Path(config_path).open("r") as f:
        data = yaml.safe_load(f)
    return ControllerConfig(**(data if data else {}))
