"""审计日志保留期清理工作进程。

主流程:
1) 按固定间隔计算保留期截止时间
2) 分批删除早于截止时间的审计日志，每批独立提交
3) 收到停止信号后在批次之间退出，不中断正在提交的批次
"""

from collections.abc import Callable
from datetime import datetime, timezone
import logging
import signal
import threading

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from acp_api.services.audit import PurgeResult, purge_audit_logs, retention_cutoff
from acp_worker.config import get_settings

logger = logging.getLogger("acp_worker")


def _setup_logging() -> None:
    """初始化日志输出格式与级别。"""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _now_iso() -> str:
    """返回当前 UTC 时间的 ISO 字符串。"""
    return datetime.now(timezone.utc).isoformat()


class RetentionPurgeJob:
    """定时清理任务，可在两次运行之间或批次之间取消。"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        retention_days: int,
        batch_size: int,
        interval_seconds: float,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.retention_days = retention_days
        self.batch_size = batch_size
        self.interval_seconds = interval_seconds
        self.stop_event = stop_event or threading.Event()

    def stop(self) -> None:
        self.stop_event.set()

    def run_once(self, *, now: datetime | None = None) -> PurgeResult:
        """执行一次清理。"""
        cutoff = retention_cutoff(self.retention_days, now=now)
        with self.session_factory() as db:
            return purge_audit_logs(
                db,
                cutoff=cutoff,
                batch_size=self.batch_size,
                should_stop=self.stop_event.is_set,
            )

    def run_forever(self) -> None:
        """循环执行直到收到停止信号；单次失败只记录日志，等待下一轮。"""
        while not self.stop_event.is_set():
            try:
                result = self.run_once()
                logger.info(
                    "purge finished deleted=%s cutoff=%s cancelled=%s",
                    result.deleted_count,
                    result.cutoff.isoformat(),
                    result.cancelled,
                )
            except Exception:
                logger.exception("purge run failed")
            # wait 在收到停止信号时立即返回。
            self.stop_event.wait(self.interval_seconds)
        logger.info("purge job stopped")


def main() -> None:
    """工作进程入口。"""
    _setup_logging()
    settings = get_settings()
    engine = create_engine(settings.database_url, future=True, pool_pre_ping=True)
    job = RetentionPurgeJob(
        sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False),
        retention_days=settings.audit_retention_days,
        batch_size=settings.audit_purge_batch_size,
        interval_seconds=settings.audit_purge_interval_seconds,
    )

    def _handle_signal(signum, _frame) -> None:
        logger.info("received signal=%s, stopping", signum)
        job.stop()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    logger.info(
        "worker started worker_id=%s retention_days=%s at=%s",
        settings.worker_id,
        settings.audit_retention_days,
        _now_iso(),
    )
    job.run_forever()


if __name__ == "__main__":
    main()
