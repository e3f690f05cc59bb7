from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.websockets import WebSocketDisconnect

from app.agents.orchestrator import GenerationOrchestrator
from app.api.deps import GatewayDep, ProjectServiceDep, SettingsDep, TaskManagerDep, WsManagerDep
from app.api.v1.router import api_router
from app.config import Settings, get_settings
from app.exceptions import AppException
from app.services.gateway import AIGateway
from app.services.project_service import ProjectService
from app.services.task_manager import TaskManager, task_manager
from app.ws.manager import ConnectionManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    # 关闭时取消所有仍在进行的出图任务
    await task_manager.shutdown()


def configure_logging(settings: Settings) -> None:
    level = settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("app").setLevel(level)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_v1_prefix)

    # 全局异常处理器
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        """处理自定义应用异常"""
        logger.error(
            f"AppException: {exc.code} - {exc.message}",
            extra={
                "code": exc.code,
                "status_code": exc.status_code,
                "details": exc.details,
                "path": request.url.path,
                "method": request.method,
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": exc.code,
                    "message": exc.message,
                    "details": exc.details,
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """处理未捕获的异常"""
        logger.exception(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )
        # 开发环境返回详细错误，生产环境只返回友好消息
        details = {"error": str(exc)} if settings.environment == "development" else {}
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "服务器内部错误，请稍后重试",
                    "details": details,
                }
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.websocket("/ws/projects/{project_id}")
    async def ws_projects(
        websocket: WebSocket,
        project_id: str,
        ws_manager: ConnectionManager = WsManagerDep,
        projects: ProjectService = ProjectServiceDep,
        app_settings: Settings = SettingsDep,
        gateway: AIGateway = GatewayDep,
        tasks: TaskManager = TaskManagerDep,
    ):
        try:
            await ws_manager.connect(project_id, websocket)
            project = projects.get(project_id)
            await ws_manager.send_event(
                project_id,
                {
                    "type": "connected",
                    "data": {
                        "project_id": project_id,
                        "phase": project.phase.value if project else None,
                    },
                },
            )

            while True:
                try:
                    msg = await websocket.receive_json()
                    msg_type = msg.get("type")
                    if msg_type == "ping":
                        await ws_manager.send_event(project_id, {"type": "pong", "data": {}})
                    elif msg_type == "echo":
                        await ws_manager.send_event(
                            project_id, {"type": "echo", "data": msg.get("data") or {}}
                        )
                    elif msg_type == "confirm":
                        # 确认角色形象 = 开始绘制分镜
                        project = projects.require(project_id)
                        orchestrator = GenerationOrchestrator(
                            settings=app_settings, ws=ws_manager, project=project, gateway=gateway
                        )
                        await orchestrator.begin_storyboard()
                        tasks.spawn(project_id, orchestrator.run_storyboard(), name=f"storyboard:{project_id}")
                except WebSocketDisconnect:
                    logger.info(f"WebSocket disconnected for project {project_id}")
                    break
                except AppException as e:
                    await ws_manager.send_event(
                        project_id,
                        {"type": "error", "data": {"code": e.code, "message": e.message}},
                    )
                except Exception as e:
                    logger.error(f"WebSocket message error: {e}", exc_info=True)
                    await ws_manager.send_event(
                        project_id,
                        {
                            "type": "error",
                            "data": {
                                "code": "WS_MESSAGE_ERROR",
                                "message": "消息处理失败",
                            },
                        },
                    )
        except Exception as e:
            logger.error(f"WebSocket connection error: {e}", exc_info=True)
            try:
                await ws_manager.send_event(
                    project_id,
                    {
                        "type": "error",
                        "data": {
                            "code": "WS_CONNECTION_ERROR",
                            "message": "连接失败",
                        },
                    },
                )
            except Exception:
                pass  # 连接已断开，忽略发送错误
        finally:
            await ws_manager.disconnect(project_id, websocket)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, log_level=_settings.log_level.lower())
