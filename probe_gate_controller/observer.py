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

import json
import logging
from typing import Any, Callable, Dict, List

from pydantic_core import to_jsonable_python

logger = logging.getLogger(__name__)

Callback = Callable[[str, Dict[str, Any]], None]


class Observer:
    """Fan reconcile events out to registered callbacks. A failing callback is logged and skipped."""

    def __init__(self):
        self.callbacks: List[Callback] = []

    def register(self, callback: Callback):
        self.callbacks.append(callback)

    def notify(self, event: str, data: Dict[str, Any]):
        for callback in self.callbacks:
            try:
                callback(event, data)
            except Exception as e:
                logger.warning(f"Observer callback failed for event {event}: {e}")


def gen_json_logging_callback(logger: logging.Logger, level: int = logging.DEBUG) -> Callback:
    def json_logging(event: str, data: Dict[str, Any]):
        if logger.isEnabledFor(level):
            logger.log(level, json.dumps({"event": event, **to_jsonable_python(data)}))

    return json_logging


DEFAULT_OBSERVER = Observer()
DEFAULT_OBSERVER.register(gen_json_logging_callback(logger))
