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

import asyncio
import logging
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

import urllib3
from kubernetes import client, watch
from kubernetes.client.rest import ApiException

from probe_gate_controller.app.config import ControllerConfig
from probe_gate_controller.common.kube_client import PodClient
from probe_gate_controller.controller.work_queue import WorkQueue
from probe_gate_controller.models.reconcile import ReconcileRequest
from probe_gate_controller.reconciler import PodProbeReconciler

logger = logging.getLogger(__name__)

RECONCILED_EVENT_TYPES = ["ADDED", "MODIFIED"]


class ControllerRunner:
    def __init__(
        self,
        config: ControllerConfig,
        reconciler: PodProbeReconciler,
        core_v1: Optional[client.CoreV1Api] = None,
    ) -> None:
        self.config = config
        self.reconciler = reconciler
        self.core_v1 = core_v1 if core_v1 else client.CoreV1Api()
        self.queue: WorkQueue[ReconcileRequest] = WorkQueue()
        self.stop_event = asyncio.Event()
        self.watch_stopped = threading.Event()
        self._watch: Optional[watch.Watch] = None

    def list_pods_call(self) -> Callable[..., Any]:
        if self.config.namespace:
            return self.core_v1.list_namespaced_pod
        return self.core_v1.list_pod_for_all_namespaces

    def list_pods_args(self) -> List[Any]:
        return [self.config.namespace] if self.config.namespace else []

    def enqueue(self, loop: asyncio.AbstractEventLoop, event: Dict[str, Any]):
        if event["type"] not in RECONCILED_EVENT_TYPES:
            return
        pod = event["object"]
        request = ReconcileRequest(namespace=pod.metadata.namespace, name=pod.metadata.name)
        loop.call_soon_threadsafe(self.queue.add, request)

    def watch_pods(self, loop: asyncio.AbstractEventLoop):
        # Each watch ends after the resync period. A fresh watch lists every Pod again as ADDED.
        while not self.watch_stopped.is_set():
            self._watch = watch.Watch()
            logger.debug(f"Start watching Pods (namespace: {self.config.namespace or 'all'})...")
            try:
                for event in self._watch.stream(
                    self.list_pods_call(), *self.list_pods_args(), timeout_seconds=self.config.resync_period_seconds
                ):
                    if self.watch_stopped.is_set():
                        break
                    self.enqueue(loop, event)
            except (ApiException, urllib3.exceptions.HTTPError) as e:
                logger.error(f"Pod watch failed. Retry in {self.config.watch_retry_interval_seconds}s: {e}")
                self.watch_stopped.wait(self.config.watch_retry_interval_seconds)
            except Exception as e:
                logger.error(f"Unexpected error in Pod watch. Retry in {self.config.watch_retry_interval_seconds}s: {e}", exc_info=True)
                self.watch_stopped.wait(self.config.watch_retry_interval_seconds)

    async def worker(self, executor: ThreadPoolExecutor):
        loop = asyncio.get_running_loop()
        while True:
            request = await self.queue.get()
            try:
                await loop.run_in_executor(executor, self.reconciler.reconcile, request)
            except Exception as e:
                logger.error(f"Failed to reconcile Pod '{request}'. Requeue in {self.config.requeue_after_error_seconds}s: {e}")
                self.queue.add_after(request, self.config.requeue_after_error_seconds)
            finally:
                self.queue.done(request)

    async def run(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.stop)

        max_workers = self.config.max_concurrent_reconciles
        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reconcile")
        workers = [asyncio.create_task(self.worker(executor)) for _ in range(max_workers)]
        watcher = threading.Thread(target=self.watch_pods, args=(loop,), name="pod-watch", daemon=True)
        watcher.start()
        logger.info(f"Controller started with {max_workers} workers")

        try:
            await self.stop_event.wait()
        finally:
            self.watch_stopped.set()
            if self._watch:
                self._watch.stop()
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            executor.shutdown(wait=False, cancel_futures=True)
            logger.info("Controller stopped")

    def stop(self):
        logger.info("Stopping controller...")
        self.stop_event.set()


def run(config: ControllerConfig):
    pod_client = PodClient()
    reconciler = PodProbeReconciler(pod_client)
    runner = ControllerRunner(config, reconciler, core_v1=pod_client.core_v1)
    asyncio.run(runner.run())
