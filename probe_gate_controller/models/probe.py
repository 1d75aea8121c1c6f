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

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ProbeSchemeEnum(str, Enum):
    HTTP = "http"
    HTTPS = "https"


class ProbeTarget(BaseModel):
    scheme: ProbeSchemeEnum = Field(ProbeSchemeEnum.HTTP, description="URL scheme used for the probe request.")
    host: str = Field(..., description="The IP address of the Pod.")
    port: int = Field(..., description="The container port the probe request is sent to.")
    path: str = Field(..., description="The HTTP path of the probe request, starting with '/'.")
    timeout: float = Field(..., description="Seconds to wait for the probe target to respond.")

    @property
    def url(self) -> str:
        return f"{self.scheme.value}://{self.host}:{self.port}{self.path}"


class ProbeResult(BaseModel):
    success: bool = Field(..., description="True iff the probe target answered with HTTP 200.")
    message: Optional[str] = Field(None, description="A human-readable explanation of a failed probe.")
    status_code: Optional[int] = Field(None, description="HTTP status code, if a response was received.")
