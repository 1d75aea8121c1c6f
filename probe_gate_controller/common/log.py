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
from typing import Union

from probe_gate_controller.app.config import PROJECT_LOG_LEVEL, ROOT_LOG_LEVEL

log_format = "[%(asctime)s %(levelname)s %(name)s] %(message)s"

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.FATAL,
    "notset": logging.NOTSET,
    "none": logging.NOTSET,
}

# Client libraries that log every request at DEBUG.
NOISY_LOGGERS = ["urllib3", "kubernetes"]


def to_log_level(level: Union[str, int]):
    if isinstance(level, int):
        return level
    if not isinstance(level, str):
        return logging.INFO
    return LOG_LEVELS.get(level.lower(), logging.INFO)


def init(project_log_level: Union[str, int] = PROJECT_LOG_LEVEL):
    root_log_level = to_log_level(ROOT_LOG_LEVEL)
    logging.basicConfig(format=log_format, level=root_log_level)
    if root_log_level != logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    project_log_level = to_log_level(project_log_level)
    logger = logging.getLogger("probe_gate_controller")
    logger.setLevel(project_log_level)
