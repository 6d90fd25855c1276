"""Table-related schemas.

Wire names are camelCase to match what synchronizing clients send and expect.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from tablesync.services.sync_facade import TableResource, TableResourceList
from tablesync.services.table_registry import Column

_ID_PATTERN = r"^[A-Za-z][A-Za-z0-9_]*$"


class ColumnSchema(BaseModel):
    """One column of a table definition."""

    model_config = ConfigDict(populate_by_name=True)

    element_key: str = Field(alias="elementKey", min_length=1, max_length=200, pattern=_ID_PATTERN)
    element_name: str = Field(alias="elementName", min_length=1, max_length=200)
    element_type: str = Field(default="string", alias="elementType", min_length=1)
    list_child_element_keys: list[str] | None = Field(default=None, alias="listChildElementKeys")

    def to_column(self) -> Column:
        return Column(
            element_key=self.element_key,
            element_name=self.element_name,
            element_type=self.element_type,
            list_child_element_keys=(
                tuple(self.list_child_element_keys)
                if self.list_child_element_keys is not None
                else None
            ),
        )

    @classmethod
    def from_column(cls, column: Column) -> ColumnSchema:
        return cls(
            element_key=column.element_key,
            element_name=column.element_name,
            element_type=column.element_type,
            list_child_element_keys=(
                list(column.list_child_element_keys)
                if column.list_child_element_keys is not None
                else None
            ),
        )


class TableDefinitionRequest(BaseModel):
    """Request to create a table with the given columns."""

    model_config = ConfigDict(populate_by_name=True)

    columns: list[ColumnSchema] = Field(default_factory=list, max_length=2000)
    office_id: str | None = Field(default=None, alias="officeId", max_length=200)


class TableDefinitionResponse(BaseModel):
    """A table pinned to one schema ETag, with that schema's columns."""

    model_config = ConfigDict(populate_by_name=True)

    table_id: str = Field(alias="tableId")
    schema_etag: str = Field(alias="schemaETag")
    schema_pending: bool = Field(default=False, alias="schemaPending")
    columns: list[ColumnSchema] = Field(default_factory=list)
    self_uri: str = Field(alias="selfUri")


class TableResourceResponse(BaseModel):
    """A table and the links a client follows from it."""

    model_config = ConfigDict(populate_by_name=True)

    table_id: str = Field(alias="tableId")
    schema_etag: str = Field(alias="schemaETag")
    self_uri: str = Field(alias="selfUri")
    definition_uri: str = Field(alias="definitionUri")
    data_uri: str = Field(alias="dataUri")
    instance_files_uri: str = Field(alias="instanceFilesUri")
    diff_uri: str = Field(alias="diffUri")
    acl_uri: str = Field(alias="aclUri")
    table_level_manifest_etag: str | None = Field(default=None, alias="tableLevelManifestETag")

    @classmethod
    def from_resource(cls, resource: TableResource) -> TableResourceResponse:
        return cls(
            table_id=resource.table_id,
            schema_etag=resource.schema_etag,
            self_uri=resource.self_uri,
            definition_uri=resource.definition_uri,
            data_uri=resource.data_uri,
            instance_files_uri=resource.instance_files_uri,
            diff_uri=resource.diff_uri,
            acl_uri=resource.acl_uri,
            table_level_manifest_etag=resource.table_level_manifest_etag,
        )


class TableResourceListResponse(BaseModel):
    """One page of tables plus paging cursors."""

    model_config = ConfigDict(populate_by_name=True)

    tables: list[TableResourceResponse] = Field(default_factory=list)
    refetch_cursor: str | None = Field(default=None, alias="webSafeRefetchCursor")
    backward_cursor: str | None = Field(default=None, alias="webSafeBackwardCursor")
    resume_cursor: str | None = Field(default=None, alias="webSafeResumeCursor")
    has_more: bool = Field(default=False, alias="hasMoreResults")
    has_prior: bool = Field(default=False, alias="hasPriorResults")
    app_level_manifest_etag: str | None = Field(default=None, alias="appLevelManifestETag")

    @classmethod
    def from_resource_list(cls, page: TableResourceList) -> TableResourceListResponse:
        return cls(
            tables=[TableResourceResponse.from_resource(r) for r in page.tables],
            refetch_cursor=page.refetch_cursor,
            backward_cursor=page.backward_cursor,
            resume_cursor=page.resume_cursor,
            has_more=page.has_more,
            has_prior=page.has_prior,
            app_level_manifest_etag=page.app_level_manifest_etag,
        )
