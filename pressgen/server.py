from __future__ import annotations

import functools
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path


class PreviewHandler(SimpleHTTPRequestHandler):
    def log_message(self, format: str, *args) -> None:
        print(f"{self.address_string()} {format % args}")


def make_server(public_dir: Path, host: str, port: int) -> ThreadingHTTPServer:
    handler = functools.partial(PreviewHandler, directory=str(public_dir))
    return ThreadingHTTPServer((host, port), handler)


def serve(public_dir: Path, host: str = "localhost", port: int = 4000) -> None:
    httpd = make_server(public_dir, host, port)
    print(f"Serving {public_dir} at http://{host}:{httpd.server_address[1]}/ (Ctrl+C to stop)")
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        print("Stopping server.")
    finally:
        httpd.server_close()
