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
from typing import Generic, Hashable, Set, TypeVar

T = TypeVar("T", bound=Hashable)


class WorkQueue(Generic[T]):
    """
    Deduplicating asyncio queue.

    An item that is already waiting is not queued twice, and an item that is being
    processed is queued again only after `done` is called for it, so no two workers
    ever hold the same item. Must be used from the event loop thread.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._dirty: Set[T] = set()
        self._processing: Set[T] = set()

    def __len__(self) -> int:
        return self._queue.qsize()

    def add(self, item: T):
        if item in self._dirty:
            return
        self._dirty.add(item)
        if item in self._processing:
            return
        self._queue.put_nowait(item)

    def add_after(self, item: T, delay: float):
        if delay <= 0:
            self.add(item)
            return
        asyncio.get_running_loop().call_later(delay, self.add, item)

    async def get(self) -> T:
        item = await self._queue.get()
        self._processing.add(item)
        self._dirty.discard(item)
        return item

    def done(self, item: T):
        self._processing.discard(item)
        if item in self._dirty:
            self._queue.put_nowait(item)
