"""审计日志相关请求结构。"""

from datetime import datetime

from pydantic import Field

from acp_api.schemas.common import CommandModel


class AuditPurgeRequest(CommandModel):
    """审计日志清理请求；两者都不传时使用默认保留天数。"""

    retention_days: int | None = Field(default=None, ge=0, description="保留最近 N 天的日志。", examples=[90])
    before: datetime | None = Field(default=None, description="删除该时间点之前的日志，优先于 retention_days。")
