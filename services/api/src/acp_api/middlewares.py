"""应用中间件注册。"""

from time import perf_counter
import uuid

from fastapi import FastAPI, Request


def client_ip(request: Request) -> str | None:
    """从代理头或连接信息中提取客户端 IP。"""
    # 优先读取反向代理透传头，兼容网关/负载均衡场景。
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return None


async def request_context_middleware(request: Request, call_next):
    """注入请求追踪 ID 与审计所需的客户端信息，并通过响应头返回追踪 ID。"""
    request.state.request_id = str(uuid.uuid4())
    request.state.request_started_at = perf_counter()
    request.state.client_ip = client_ip(request)
    request.state.user_agent = request.headers.get("user-agent")
    response = await call_next(request)
    response.headers["X-Request-Id"] = request.state.request_id
    elapsed = perf_counter() - request.state.request_started_at
    response.headers["X-Process-Time-Ms"] = str(round(elapsed * 1000, 2))
    return response


def register_middlewares(app: FastAPI) -> None:
    """集中注册中间件。"""
    app.middleware("http")(request_context_middleware)
