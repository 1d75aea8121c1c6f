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

import argparse
import logging

import probe_gate_controller.controller.runner
from probe_gate_controller.app.config import ControllerConfig, load_config
from probe_gate_controller.common import log
from probe_gate_controller.common.kube_client import load_kube_config

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Kubernetes controller marking the probe-200-only readiness gate of Pods")
    parser.add_argument("-v", "--verbose", help="Display verbose output", action="count", default=0)
    parser.add_argument("-c", "--config", type=str, help="Path to the controller configuration (YAML).")
    parser.add_argument("--namespace", type=str, help="Watch Pods in this namespace only. Default is every namespace.")
    parser.add_argument("--kubeconfig", type=str, help="Path to the kubeconfig used when running outside the cluster.")
    parser.add_argument("--max-concurrent-reconciles", type=int, help="Maximum number of Pods reconciled at the same time.")

    args = parser.parse_args()

    if args.verbose > 0:
        log.init(logging.DEBUG)
    else:
        log.init()

    config = load_config(args.config)
    overrides = {
        "namespace": args.namespace,
        "kubeconfig": args.kubeconfig,
        "max_concurrent_reconciles": args.max_concurrent_reconciles,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        config = ControllerConfig(**{**config.model_dump(), **overrides})

    load_kube_config(config.kubeconfig)
    logger.info("Starting controller...")
    probe_gate_controller.controller.runner.run(config)


if __name__ == "__main__":
    main()
