from typing import List, Optional, TypedDict


class ReorderRequest(TypedDict, total=False):
    task_id: str
    new_index: int
    join_group: Optional[bool]
    version: int


class InsertRequest(TypedDict, total=False):
    task: dict
    position: str  # start, end, after, linked_with
    target_task_id: Optional[str]
    version: int


class LinkRequest(TypedDict, total=False):
    source_task_id: str
    target_task_ids: List[str]
    policy: Optional[str]
    anchor_task_id: Optional[str]
    version: int


class UnlinkRequest(TypedDict, total=False):
    task_id: str
    mode: Optional[str]
    version: int


class ChangeDateRequest(TypedDict, total=False):
    task_id: str
    new_date: str
    action: Optional[str]
    version: int
