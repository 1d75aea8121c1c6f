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

import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


class StatusHandler(BaseHTTPRequestHandler):
    """
    `/status/<code>` answers with that code, `/redirect` redirects to `/status/200`, `/loop` redirects
    to itself, `/drip` sends an 8 byte body one byte every half second, `/large` sends 1 MiB.
    Anything else answers 200.
    """

    def do_GET(self):
        if self.path == "/redirect":
            return self.send_redirect("/status/200")
        if self.path == "/loop":
            return self.send_redirect("/loop")
        if self.path == "/drip":
            return self.send_drip()
        if self.path == "/large":
            return self.send_body(200, b"x" * (1024 * 1024))
        code = 200
        if self.path.startswith("/status/"):
            code = int(self.path.split("/")[-1])
        self.send_body(code, f"status {code}".encode())

    def send_body(self, code: int, body: bytes):
        self.send_response(code)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        try:
            self.wfile.write(body)
        except ConnectionError:
            pass

    def send_redirect(self, location: str):
        self.send_response(302)
        self.send_header("Location", location)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def send_drip(self):
        self.send_response(200)
        self.send_header("Content-Length", "8")
        self.end_headers()
        try:
            for _ in range(8):
                self.wfile.write(b"x")
                self.wfile.flush()
                time.sleep(0.5)
        except ConnectionError:
            pass

    def log_message(self, format, *args):
        pass


@pytest.fixture
def http_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), StatusHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server.server_address
    server.shutdown()
    server.server_close()


@pytest.fixture
def closed_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return port
