"""Request bodies for the JSON API.

Field names are snake_case; camelCase aliases are accepted for clients
written against the browser dashboard.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cloudvault.fs.utils import ROOT_FOLDER


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RenameFileRequest(_Body):
    name: str


class FileIdsRequest(_Body):
    ids: list[str] = Field(default_factory=list)


class MoveFilesRequest(_Body):
    ids: list[str] = Field(default_factory=list)
    target: str = ROOT_FOLDER


class CreateFolderRequest(_Body):
    name: str
    parent: str = ROOT_FOLDER


class RenameFolderRequest(_Body):
    old_path: str
    new_path: str


class FolderPathRequest(_Body):
    path: str


class CreateShareRequest(_Body):
    file_id: str
    password: str | None = None
    expires_in_days: float | None = Field(default=None, gt=0)


class CreateFolderLinkRequest(_Body):
    path: str
    password: str | None = None
    expires_in_days: float | None = Field(default=None, gt=0)


class PartRequest(_Body):
    part_number: int = Field(ge=1)
    etag: str


class CompleteUploadRequest(_Body):
    upload_id: str
    key: str
    parts: list[PartRequest]
