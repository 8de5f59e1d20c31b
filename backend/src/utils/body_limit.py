"""Request body size enforcement for chunked uploads."""

from typing import Callable

from starlette.responses import Response


def has_content_length(scope) -> bool:
    return any(name == b"content-length" for name, _ in scope.get("headers", []))


class BodySizeLimitMiddleware:
    """ASGI middleware capping bodies sent without a Content-Length header.

    Requests that declare their length are checked up front by the http
    middleware. Chunked bodies are read here, at most `max_bytes` of them,
    then replayed to the application in a single message.
    """

    def __init__(
        self,
        app,
        get_max_bytes: Callable[[], int],
        too_large_response: Callable[[], Response],
    ):
        self.app = app
        self.get_max_bytes = get_max_bytes
        self.too_large_response = too_large_response

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or has_content_length(scope):
            await self.app(scope, receive, send)
            return

        max_bytes = self.get_max_bytes()
        chunks: list[bytes] = []
        received = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            body = message.get("body", b"")
            received += len(body)
            if received > max_bytes:
                await self.too_large_response()(scope, receive, send)
                return
            chunks.append(body)
            more_body = message.get("more_body", False)

        buffered = b"".join(chunks)
        replayed = False

        async def replay_receive():
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": buffered, "more_body": False}
            return await receive()

        await self.app(scope, replay_receive, send)
