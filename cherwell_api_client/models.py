"""Typed mirrors of the Cherwell REST API payloads.

Every model maps the vendor's camelCase JSON names onto snake_case
attributes through aliases, so ``model_validate`` accepts responses as
they come off the wire and :func:`to_payload` produces request bodies
the server understands.  Keys the vendor adds that are not modelled
here are ignored.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CherwellModel(BaseModel):
    """Common configuration shared by all wire models."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # The vendor sends null for empty lists; let the defaults apply.
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


def to_payload(model: BaseModel) -> Dict[str, Any]:
    """Dump ``model`` by alias, leaving out unset (``None``) values."""
    return model.model_dump(by_alias=True, exclude_none=True, mode="json")


class ErrorEnvelope(CherwellModel):
    """Error details the vendor embeds in most response bodies."""

    error_code: Optional[str] = Field(None, alias="errorCode")
    error_message: Optional[str] = Field(None, alias="errorMessage")
    has_error: bool = Field(False, alias="hasError")
    http_status_code: Optional[str] = Field(None, alias="httpStatusCode")


class Link(CherwellModel):
    name: Optional[str] = None
    url: Optional[str] = None


class RecordField(CherwellModel):
    """A single field of a business object record."""

    dirty: bool = False
    display_name: Optional[str] = Field(None, alias="displayName")
    html: Optional[str] = None
    name: Optional[str] = None
    value: Optional[str] = None
    field_id: Optional[str] = Field(None, alias="fieldId")
    full_field_id: Optional[str] = Field(None, alias="fullFieldId")


class BusinessObjectRecord(ErrorEnvelope):
    """A record of a business object together with its field values.

    ``field_values`` is not part of the wire format.  It maps each
    field's display name to its value so callers can read and edit
    records without walking ``fields``; :meth:`sync_fields` writes the
    edits back before the record is saved.
    """

    bus_ob_id: Optional[str] = Field(None, alias="busObId")
    bus_ob_rec_id: Optional[str] = Field(None, alias="busObRecId")
    bus_ob_public_id: Optional[str] = Field(None, alias="busObPublicId")
    cache_key: Optional[str] = Field(None, alias="cacheKey")
    cache_scope: Optional[str] = Field(None, alias="cacheScope")
    fields: List[RecordField] = Field(default_factory=list)
    persist: bool = False
    field_validation_errors: Optional[List[Any]] = Field(None, alias="fieldValidationErrors")
    notification_triggers: Optional[List[Any]] = Field(None, alias="notificationTriggers")
    links: Optional[List[Link]] = None
    field_values: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    def process_fields(self) -> "BusinessObjectRecord":
        """Rebuild ``field_values`` from ``fields`` and return ``self``."""
        self.field_values = {f.display_name: f.value for f in self.fields}
        return self

    def sync_fields(self) -> List[str]:
        """Commit changes made in ``field_values`` to ``fields``.

        Changed fields get the new value as a string (``None`` becomes
        ``""``) and are marked dirty.  Fields with no entry in
        ``field_values`` are untouched.  Returns the display names of the
        changed fields.
        """
        changed = []
        for f in self.fields:
            if f.display_name not in self.field_values:
                continue
            new_value = self.field_values[f.display_name]
            # Cherwell clears a field on an empty string, not on null
            new_value = "" if new_value is None else str(new_value)
            if f.value != new_value:
                f.value = new_value
                f.dirty = True
                changed.append(f.display_name)
        return changed


class BusinessObject(CherwellModel):
    """Summary of a business object type (e.g. "Incident")."""

    bus_ob_id: Optional[str] = Field(None, alias="busObId")
    name: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    first_rec_id_field: Optional[str] = Field(None, alias="firstRecIdField")
    group_summaries: List["BusinessObject"] = Field(default_factory=list, alias="groupSummaries")
    rec_id_fields: Optional[str] = Field(None, alias="recIdFields")
    state_field_id: Optional[str] = Field(None, alias="stateFieldId")
    states: Optional[str] = None
    group: bool = False
    lookup: bool = False
    major: bool = False
    supporting: bool = False

    def new_record(self, fields: Optional[List[RecordField]] = None) -> BusinessObjectRecord:
        """Return a new, unsaved record of this business object.

        Every given field is marked dirty so that it is sent on save.
        Fields may be named by display name only; missing field ids are
        filled in from the template by
        :meth:`~cherwell_api_client.CherwellClient.save_record`.
        """
        new_fields = [f.model_copy(update={"dirty": True}) for f in fields or []]
        record = BusinessObjectRecord(
            bus_ob_id=self.bus_ob_id,
            fields=new_fields,
            persist=True,
        )
        return record.process_fields()


class BusinessObjectTemplate(ErrorEnvelope):
    fields: List[RecordField] = Field(default_factory=list)


class FieldDefinition(CherwellModel):
    auto_fill: bool = Field(False, alias="autoFill")
    calculated: bool = False
    category: Optional[str] = None
    decimal_digits: Optional[int] = Field(None, alias="decimalDigits")
    description: Optional[str] = None
    details: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    enabled: bool = False
    field_id: Optional[str] = Field(None, alias="fieldId")
    has_date: bool = Field(False, alias="hasDate")
    has_time: bool = Field(False, alias="hasTime")
    is_full_text_searchable: bool = Field(False, alias="isFullTextSearchable")
    maximum_size: Optional[str] = Field(None, alias="maximumSize")
    name: Optional[str] = None
    read_only: bool = Field(False, alias="readOnly")
    required: bool = False
    type: Optional[str] = None
    type_localized: Optional[str] = Field(None, alias="typeLocalized")
    validated: bool = False
    whole_digits: Optional[int] = Field(None, alias="wholeDigits")


class GridDefinition(CherwellModel):
    display_name: Optional[str] = Field(None, alias="displayName")
    grid_id: Optional[str] = Field(None, alias="gridId")
    name: Optional[str] = None


class Relationship(CherwellModel):
    cardinality: Optional[str] = None
    description: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    field_definitions: List[FieldDefinition] = Field(default_factory=list, alias="fieldDefinitions")
    relationship_id: Optional[str] = Field(None, alias="relationshipId")
    target: Optional[str] = None


class BusinessObjectSchema(ErrorEnvelope):
    """Field and relationship definitions of a business object."""

    bus_ob_id: Optional[str] = Field(None, alias="busObId")
    field_definitions: List[FieldDefinition] = Field(default_factory=list, alias="fieldDefinitions")
    first_rec_id_field: Optional[str] = Field(None, alias="firstRecIdField")
    grid_definitions: List[GridDefinition] = Field(default_factory=list, alias="gridDefinitions")
    name: Optional[str] = None
    rec_id_fields: Optional[str] = Field(None, alias="recIdFields")
    relationships: List[Relationship] = Field(default_factory=list)
    state_field_id: Optional[str] = Field(None, alias="stateFieldId")
    states: Optional[str] = None

    def get_relationship_id(self, display_name: str) -> str:
        """Return the id of the relationship called ``display_name``, or ``""``."""
        for relationship in self.relationships:
            if relationship.display_name == display_name:
                return relationship.relationship_id or ""
        return ""


class RelatedBusinessObjects(ErrorEnvelope):
    links: Optional[List[Link]] = None
    page_number: Optional[int] = Field(None, alias="pageNumber")
    page_size: Optional[int] = Field(None, alias="pageSize")
    parent_bus_ob_id: Optional[str] = Field(None, alias="parentBusObId")
    parent_bus_ob_public_id: Optional[str] = Field(None, alias="parentBusObPublicId")
    parent_bus_ob_rec_id: Optional[str] = Field(None, alias="parentBusObRecId")
    related_business_objects: List[BusinessObjectRecord] = Field(
        default_factory=list, alias="relatedBusinessObjects"
    )
    relationship_id: Optional[str] = Field(None, alias="relationshipId")
    total_records: Optional[int] = Field(None, alias="totalRecords")


# ----------------------------------------------------------------------
# Searches
# ----------------------------------------------------------------------
class Filter(CherwellModel):
    """A search filter.  ``field_name`` is resolved to ``field_id`` locally."""

    field_id: Optional[str] = Field(None, alias="fieldId")
    field_name: Optional[str] = Field(None, exclude=True)
    operator: Optional[str] = None
    value: Optional[str] = None


class PromptValue(CherwellModel):
    bus_ob_id: Optional[str] = Field(None, alias="busObId")
    collection_store_entire_row: Optional[str] = Field(None, alias="collectionStoreEntireRow")
    collection_value_field: Optional[str] = Field(None, alias="collectionValueField")
    field_id: Optional[str] = Field(None, alias="fieldId")
    list_return_field_id: Optional[str] = Field(None, alias="listReturnFieldId")
    prompt_id: Optional[str] = Field(None, alias="promptId")
    value: Any = None
    value_is_rec_id: Optional[bool] = Field(None, alias="valueIsRecId")


class Sorting(CherwellModel):
    field_id: Optional[str] = Field(None, alias="fieldId")
    sort_direction: Optional[int] = Field(None, alias="sortDirection")


class Search(CherwellModel):
    """Request body of ``getsearchresults``."""

    association: Optional[str] = None
    bus_ob_id: Optional[str] = Field(None, alias="busObId")
    custom_grid_def_id: Optional[str] = Field(None, alias="customGridDefId")
    date_time_formatting: Optional[str] = Field(None, alias="dateTimeFormatting")
    field_id: Optional[str] = Field(None, alias="fieldId")
    fields: Optional[List[str]] = None
    filters: Optional[List[Filter]] = None
    include_all_fields: Optional[bool] = Field(None, alias="includeAllFields")
    include_schema: Optional[bool] = Field(None, alias="includeSchema")
    page_number: Optional[int] = Field(None, alias="pageNumber")
    page_size: Optional[int] = Field(None, alias="pageSize")
    prompt_values: Optional[List[PromptValue]] = Field(None, alias="promptValues")
    scope: Optional[str] = None
    scope_owner: Optional[str] = Field(None, alias="scopeOwner")
    search_id: Optional[str] = Field(None, alias="searchId")
    search_name: Optional[str] = Field(None, alias="searchName")
    search_text: Optional[str] = Field(None, alias="searchText")
    sorting: Optional[List[Sorting]] = None


class Prompt(CherwellModel):
    allow_values_only: bool = Field(False, alias="allowValuesOnly")
    bus_ob_id: Optional[str] = Field(None, alias="busObId")
    collection_store_entire_row: Optional[str] = Field(None, alias="collectionStoreEntireRow")
    collection_value_field: Optional[str] = Field(None, alias="collectionValueField")
    constraint_xml: Optional[str] = Field(None, alias="constraintXml")
    contents: Optional[str] = None
    default: Optional[str] = None
    field_id: Optional[str] = Field(None, alias="fieldId")
    is_date_range: bool = Field(False, alias="isDateRange")
    list_display_option: Optional[str] = Field(None, alias="listDisplayOption")
    list_return_field_id: Optional[str] = Field(None, alias="listReturnFieldId")
    multi_line: bool = Field(False, alias="multiLine")
    prompt_id: Optional[str] = Field(None, alias="promptId")
    prompt_type: Optional[str] = Field(None, alias="promptType")
    prompt_type_name: Optional[str] = Field(None, alias="promptTypeName")
    required: bool = False
    text: Optional[str] = None
    value: Any = None
    values: Optional[List[str]] = None


class SearchResultsField(CherwellModel):
    caption: Optional[str] = None
    currency_culture: Optional[str] = Field(None, alias="currencyCulture")
    currency_symbol: Optional[str] = Field(None, alias="currencySymbol")
    decimal_digits: Optional[int] = Field(None, alias="decimalDigits")
    default_sort_order_ascending: bool = Field(False, alias="defaultSortOrderAscending")
    display_name: Optional[str] = Field(None, alias="displayName")
    field_id: Optional[str] = Field(None, alias="fieldId")
    field_name: Optional[str] = Field(None, alias="fieldName")
    full_field_id: Optional[str] = Field(None, alias="fullFieldId")
    has_default_sort_field: bool = Field(False, alias="hasDefaultSortField")
    is_binary: bool = Field(False, alias="isBinary")
    is_currency: bool = Field(False, alias="isCurrency")
    is_date_time: bool = Field(False, alias="isDateTime")
    is_filter_allowed: bool = Field(False, alias="isFilterAllowed")
    is_logical: bool = Field(False, alias="isLogical")
    is_number: bool = Field(False, alias="isNumber")
    is_short_date: bool = Field(False, alias="isShortDate")
    is_short_time: bool = Field(False, alias="isShortTime")
    is_visible: bool = Field(False, alias="isVisible")
    sort_order: Optional[str] = Field(None, alias="sortOrder")
    sortable: bool = False
    storage_name: Optional[str] = Field(None, alias="storageName")
    whole_digits: Optional[int] = Field(None, alias="wholeDigits")


class SimpleResultsListItem(BusinessObjectRecord):
    doc_repository_item_id: Optional[str] = Field(None, alias="docRepositoryItemId")
    gallery_image: Optional[str] = Field(None, alias="galleryImage")
    public_id: Optional[str] = Field(None, alias="publicId")
    scope: Optional[str] = None
    scope_owner: Optional[str] = Field(None, alias="scopeOwner")
    sub_title: Optional[str] = Field(None, alias="subTitle")
    text: Optional[str] = None
    title: Optional[str] = None


class SimpleResultsGroup(ErrorEnvelope):
    is_bus_ob_target: bool = Field(False, alias="isBusObTarget")
    simple_results_list_items: List[SimpleResultsListItem] = Field(
        default_factory=list, alias="simpleResultsListItems"
    )
    sub_title: Optional[str] = Field(None, alias="subTitle")
    target_id: Optional[str] = Field(None, alias="targetId")
    title: Optional[str] = None


class SimpleResults(ErrorEnvelope):
    groups: List[SimpleResultsGroup] = Field(default_factory=list)
    title: Optional[str] = None


class QuickSearchResult(SimpleResults):
    """Response of ``getquicksearchresults``."""


class SearchResult(ErrorEnvelope):
    business_objects: List[BusinessObjectRecord] = Field(default_factory=list, alias="businessObjects")
    has_prompts: bool = Field(False, alias="hasPrompts")
    links: Optional[List[Link]] = None
    prompts: Optional[List[Prompt]] = None
    search_results_fields: Optional[List[SearchResultsField]] = Field(None, alias="searchResultsFields")
    simple_results: Optional[SimpleResults] = Field(None, alias="simpleResults")
    total_rows: Optional[int] = Field(None, alias="totalRows")


# ----------------------------------------------------------------------
# Authentication
# ----------------------------------------------------------------------
class TokenResponse(CherwellModel):
    """Body returned by the ``token`` endpoint."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    expires: Optional[str] = Field(None, alias=".expires")
    issued: Optional[str] = Field(None, alias=".issued")
    client_id: Optional[str] = Field(None, alias="as:client_id")
    username: Optional[str] = Field(None, alias="username")


BusinessObject.model_rebuild()
