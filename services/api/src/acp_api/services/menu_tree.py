"""菜单树服务。

一次全表读取构建内存索引（id -> 节点、父 id -> 有序子 id 列表），
建树、子孙收集、循环检测均基于索引遍历，不做递归查询。
"""

from collections import defaultdict, deque
from collections.abc import Container, Iterable, Iterator
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import delete, func, or_, select, text
from sqlalchemy.orm import Session

from acp_api.core.errors import ConflictError, NotFoundError, ReferentialError
from acp_api.models.catalog import Menu
from acp_api.models.permission import RoleMenuGrant
from acp_api.schemas.menu import MenuCreateRequest, MenuUpdateRequest
from acp_api.services.validation import patch_fields


@dataclass(frozen=True)
class MenuNode:
    """菜单节点的只读快照。"""

    id: int
    name: str
    display_name: str
    path: str | None
    icon: str | None
    parent_id: int | None
    sort_order: int
    is_active: bool

    @classmethod
    def from_model(cls, menu: Menu) -> "MenuNode":
        return cls(
            id=menu.id,
            name=menu.name,
            display_name=menu.display_name,
            path=menu.path,
            icon=menu.icon,
            parent_id=menu.parent_id,
            sort_order=menu.sort_order,
            is_active=menu.is_active,
        )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class MenuTree:
    """菜单树内存索引。

    父节点不存在的菜单按根节点处理；遍历只从根出发，
    因此历史脏数据中的环不会导致无限遍历。
    """

    def __init__(self, menus: Iterable[Menu]) -> None:
        self._nodes: dict[int, MenuNode] = {menu.id: MenuNode.from_model(menu) for menu in menus}
        self._children: dict[int | None, list[int]] = defaultdict(list)
        for node in sorted(self._nodes.values(), key=lambda item: (item.sort_order, item.id)):
            parent_id = node.parent_id if node.parent_id in self._nodes else None
            self._children[parent_id].append(node.id)

    @classmethod
    def load(cls, db: Session) -> "MenuTree":
        """全表读取菜单并构建索引。"""
        return cls(db.execute(select(Menu)).scalars().all())

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, menu_id: object) -> bool:
        return menu_id in self._nodes

    def __iter__(self) -> Iterator[MenuNode]:
        """按根优先、同级按 sort_order 的顺序惰性遍历；每次迭代重新开始。"""
        return (node for _, node in self.walk())

    def get(self, menu_id: int) -> MenuNode | None:
        return self._nodes.get(menu_id)

    def children_of(self, menu_id: int | None) -> list[MenuNode]:
        return [self._nodes[child_id] for child_id in self._children.get(menu_id, [])]

    def walk(self) -> Iterator[tuple[int, MenuNode]]:
        """先序遍历，产出 (深度, 节点)。"""
        stack = [(0, root_id) for root_id in reversed(self._children.get(None, []))]
        while stack:
            depth, node_id = stack.pop()
            yield depth, self._nodes[node_id]
            for child_id in reversed(self._children.get(node_id, [])):
                stack.append((depth + 1, child_id))

    def descendant_ids(self, menu_id: int) -> list[int]:
        """广度优先收集全部子孙 ID（不含自身）。"""
        collected: list[int] = []
        seen = {menu_id}
        queue = deque(self._children.get(menu_id, []))
        while queue:
            child_id = queue.popleft()
            if child_id in seen:
                continue
            seen.add(child_id)
            collected.append(child_id)
            queue.extend(self._children.get(child_id, []))
        return collected

    def ancestor_ids(self, menu_id: int) -> list[int]:
        """自父节点向上直到根的祖先链，步数以节点总数为上限。"""
        chain: list[int] = []
        node = self._nodes.get(menu_id)
        while node is not None and node.parent_id is not None and len(chain) <= len(self._nodes):
            chain.append(node.parent_id)
            node = self._nodes.get(node.parent_id)
        return chain

    def would_create_cycle(self, menu_id: int, new_parent_id: int) -> bool:
        """判断把 menu_id 挂到 new_parent_id 下是否形成环。"""
        if new_parent_id == menu_id:
            return True
        chain = self.ancestor_ids(new_parent_id)
        # 祖先链超过节点总数说明已有数据存在环，同样拒绝。
        return menu_id in chain or len(chain) > len(self._nodes)

    def to_nested(self, include: Container[int] | None = None) -> list[dict[str, Any]]:
        """构建嵌套树；给定 include 时，不在集合内的节点连同其子树一起剪除。"""
        roots: list[dict[str, Any]] = []
        stack: list[tuple[int, list[dict[str, Any]]]] = [
            (root_id, roots) for root_id in reversed(self._children.get(None, []))
        ]
        while stack:
            node_id, siblings = stack.pop()
            if include is not None and node_id not in include:
                continue
            item = {**self._nodes[node_id].as_dict(), "children": []}
            siblings.append(item)
            for child_id in reversed(self._children.get(node_id, [])):
                stack.append((child_id, item["children"]))
        return roots


def menu_snapshot(menu: Menu) -> dict[str, Any]:
    """审计用菜单快照。"""
    return MenuNode.from_model(menu).as_dict()


def get_menu(db: Session, menu_id: int) -> Menu:
    """按 ID 读取菜单，不存在时抛出 NotFoundError。"""
    menu = db.get(Menu, menu_id)
    if menu is None:
        raise NotFoundError("菜单不存在。", menu_id=menu_id)
    return menu


def list_menus(db: Session, *, offset: int, limit: int, search: str | None = None) -> tuple[list[Menu], int]:
    """分页查询菜单平铺列表。"""
    stmt = select(Menu)
    count_stmt = select(func.count(Menu.id))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        condition = or_(Menu.name.ilike(pattern), Menu.display_name.ilike(pattern), Menu.path.ilike(pattern))
        stmt = stmt.where(condition)
        count_stmt = count_stmt.where(condition)
    menus = (
        db.execute(stmt.order_by(Menu.sort_order, Menu.id).offset(offset).limit(limit))
        .scalars()
        .all()
    )
    return list(menus), db.execute(count_stmt).scalar_one()


def _ensure_unique_name(db: Session, name: str, *, exclude_id: int | None = None) -> None:
    stmt = select(Menu.id).where(Menu.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Menu.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise ConflictError("菜单名称已存在。", name=name)


def _sync_id_sequence(db: Session) -> None:
    """显式 ID 写入后把 PostgreSQL 自增序列推进到当前最大 ID，避免后续自动编号冲突。"""
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(
        text(
            "select setval(pg_get_serial_sequence(:table, 'id'), "
            "(select coalesce(max(id), 1) from menus))"
        ),
        {"table": Menu.__tablename__},
    )


def create_menu(db: Session, command: MenuCreateRequest) -> Menu:
    """创建菜单：名称唯一，父菜单必须存在且不能是自身。"""
    if command.id is not None:
        if command.parent_id == command.id:
            raise ReferentialError("菜单不能作为自己的父菜单。", menu_id=command.id)
        if db.get(Menu, command.id) is not None:
            raise ConflictError("菜单 ID 已存在。", menu_id=command.id)
    _ensure_unique_name(db, command.name)
    if command.parent_id is not None:
        if db.get(Menu, command.parent_id) is None:
            raise ReferentialError("父菜单不存在。", parent_id=command.parent_id)
        # 显式 ID 可能正是某些孤儿菜单缺失的父节点，挂到它们下面会闭合成环。
        if command.id is not None and MenuTree.load(db).would_create_cycle(command.id, command.parent_id):
            raise ReferentialError(
                "不能将菜单挂到自身的子孙菜单之下。", menu_id=command.id, parent_id=command.parent_id
            )

    menu = Menu(**command.model_dump(exclude_none=True))
    db.add(menu)
    db.flush()
    if command.id is not None:
        _sync_id_sequence(db)
    return menu


def update_menu(db: Session, menu_id: int, command: MenuUpdateRequest) -> tuple[dict[str, Any], Menu]:
    """更新菜单；变更父菜单时沿新祖先链检查循环。返回 (变更前快照, 菜单)。"""
    menu = get_menu(db, menu_id)
    before = menu_snapshot(menu)
    changes = patch_fields(command, required={"name", "display_name", "sort_order", "is_active"})

    if "name" in changes and changes["name"] != menu.name:
        _ensure_unique_name(db, changes["name"], exclude_id=menu_id)

    new_parent_id = changes.get("parent_id", menu.parent_id)
    if new_parent_id != menu.parent_id and new_parent_id is not None:
        tree = MenuTree.load(db)
        if new_parent_id not in tree:
            raise ReferentialError("父菜单不存在。", parent_id=new_parent_id)
        if tree.would_create_cycle(menu_id, new_parent_id):
            raise ReferentialError("不能将菜单移动到自身或其子孙菜单之下。", menu_id=menu_id, parent_id=new_parent_id)

    for field, value in changes.items():
        setattr(menu, field, value)
    db.flush()
    return before, menu


def delete_menus(db: Session, menu_ids: Iterable[int]) -> tuple[list[dict[str, Any]], list[dict[str, int]]]:
    """级联删除菜单及全部子孙，并删除引用它们的角色授权。

    返回 (被删菜单快照, 被删授权)，二者均按 ID 升序。
    """
    tree = MenuTree.load(db)
    doomed: set[int] = set()
    for menu_id in menu_ids:
        if menu_id not in tree:
            raise NotFoundError("菜单不存在。", menu_id=menu_id)
        doomed.add(menu_id)
        doomed.update(tree.descendant_ids(menu_id))

    ordered_ids = sorted(doomed)
    grants = (
        db.execute(
            select(RoleMenuGrant)
            .where(RoleMenuGrant.menu_id.in_(ordered_ids))
            .order_by(RoleMenuGrant.role_id, RoleMenuGrant.menu_id)
        )
        .scalars()
        .all()
    )
    revoked = [{"role_id": grant.role_id, "menu_id": grant.menu_id} for grant in grants]
    snapshots = [tree.get(menu_id).as_dict() for menu_id in ordered_ids]

    db.execute(delete(RoleMenuGrant).where(RoleMenuGrant.menu_id.in_(ordered_ids)))
    db.execute(delete(Menu).where(Menu.id.in_(ordered_ids)))
    db.flush()
    return snapshots, revoked
