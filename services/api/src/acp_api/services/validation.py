"""写命令解析与通用校验。"""

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from acp_api.core.errors import ValidationError

CommandT = TypeVar("CommandT", bound=BaseModel)


def parse_command(model: type[CommandT], payload: CommandT | Mapping[str, Any]) -> CommandT:
    """将原始请求体解析为命令模型，未知字段或缺失字段直接拒绝。"""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        errors = [
            {
                "field": ".".join(str(item) for item in err.get("loc", [])),
                "message": err.get("msg"),
                "type": err.get("type"),
            }
            for err in exc.errors()
        ]
        raise ValidationError("请求参数校验失败。", errors=errors) from exc


def normalize_id_set(ids: list[int], *, field: str) -> set[int]:
    """将 ID 列表归一为集合，拒绝非正整数。"""
    invalid = [item for item in ids if not isinstance(item, int) or isinstance(item, bool) or item < 1]
    if invalid:
        raise ValidationError(f"{field} 包含非法 ID。", field=field, invalid_ids=invalid)
    return set(ids)


def page_window(page: int, limit: int, *, max_limit: int) -> tuple[int, int]:
    """校验分页参数并返回 (offset, limit)。"""
    if page < 1:
        raise ValidationError("page 必须大于等于 1。", field="page")
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"limit 必须在 1 到 {max_limit} 之间。", field="limit")
    return (page - 1) * limit, limit


def patch_fields(command: BaseModel, *, required: set[str]) -> dict[str, Any]:
    """提取命令中显式传入的字段，不可为空的字段显式传 null 时拒绝。"""
    changes = command.model_dump(exclude_unset=True)
    nulls = sorted(field for field in required if field in changes and changes[field] is None)
    if nulls:
        raise ValidationError("字段不能为空。", fields=nulls)
    return changes
