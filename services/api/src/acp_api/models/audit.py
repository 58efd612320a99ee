"""审计日志模型。"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from acp_api.models.base import Base, IntegerPrimaryKeyMixin, utc_now


class AuditLog(Base, IntegerPrimaryKeyMixin):
    """权限变更审计日志，只追加不修改。"""

    __tablename__ = "audit_logs"

    # 操作人用户 ID，系统动作可为空。
    actor_user_id: Mapped[int | None] = mapped_column(Integer, index=True)
    # 动作标识，见 AuditAction。
    action: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    # 资源类型，见 ResourceType。
    resource_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # 资源 ID，批量操作为 0。
    resource_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 变更前快照（规范化 JSON 文本）。
    before_data: Mapped[str | None] = mapped_column(Text)
    # 变更后快照（规范化 JSON 文本）。
    after_data: Mapped[str | None] = mapped_column(Text)
    # 人类可读描述，支持全文模糊检索。
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # 客户端 IP。
    ip: Mapped[str | None] = mapped_column(String(64))
    # 客户端 User-Agent。
    user_agent: Mapped[str | None] = mapped_column(Text)
    # 审计记录创建时间。
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False, index=True
    )
