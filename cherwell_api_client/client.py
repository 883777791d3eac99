"""
Client implementation for the Cherwell REST API.

This module defines the :class:`CherwellClient` class which
authenticates against the Cherwell ``token`` endpoint using the
OAuth2 password grant and performs HTTP requests against the
Cherwell business object endpoints.  The client keeps the access and
refresh tokens returned at login and, before every call, refreshes
the access token when it is about to expire, falling back to a full
login when the refresh is rejected.

Usage
-----

.. code-block:: python

    from cherwell_api_client import CherwellClient

    client = CherwellClient(
        username="api-user",
        password="secret",
        client_id="00000000-0000-0000-0000-000000000000",
        base_uri="https://cherwell.example.com/CherwellAPI/",
    )
    client.login()

    incident = client.get_business_object_by_display_name("Incident")
    record = client.search_record(incident, ("Status", "eq", "New"))
    record.field_values["Priority"] = "2"
    client.save_record(record)

Failures are logged through the ``cherwell_api_client.client`` logger
and the affected call returns ``None``.  Create the client with
``raise_errors=True`` to receive :class:`~cherwell_api_client.exceptions.CherwellError`
exceptions instead.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import requests
from pydantic import BaseModel, TypeAdapter, ValidationError

from . import uris
from .config import CherwellSettings
from .exceptions import CherwellAPIError, CherwellAuthError, CherwellError
from .models import (
    BusinessObject,
    BusinessObjectRecord,
    BusinessObjectSchema,
    BusinessObjectTemplate,
    ErrorEnvelope,
    Filter,
    QuickSearchResult,
    RelatedBusinessObjects,
    Search,
    SearchResult,
    TokenResponse,
    to_payload,
)

logger = logging.getLogger(__name__)

_BUSINESS_OBJECT_LIST = TypeAdapter(List[BusinessObject])

ResponseModel = Union[type, TypeAdapter]


def _decode(response: requests.Response) -> Any:
    """Parse a response body as JSON, ignoring a leading UTF-8 BOM.

    Returns ``None`` for an empty body.  Raises ``ValueError`` when the
    body is not valid UTF-8 or JSON.
    """
    text = response.content.decode("utf-8-sig")
    if not text.strip():
        return None
    return json.loads(text)


class CherwellClient:
    """A small client for the Cherwell REST API.

    Parameters
    ----------
    username : str
        Cherwell login name.
    password : str
        Password of ``username``.  May be empty for authentication modes
        that do not use one, in which case it is not sent.
    client_id : str
        The REST API client key created in Cherwell Administrator.
    base_uri : str
        Root of the REST API, e.g.
        ``"https://cherwell.example.com/CherwellAPI/"``.
    auth_mode : str, optional
        Value of the ``auth_mode`` query parameter sent on login
        (``"Internal"``, ``"Windows"``, ``"LDAP"``, ...).  Defaults to
        ``"Internal"``.
    grant_type : str, optional
        OAuth2 grant used on login.  Defaults to ``"password"``.
    timeout : float, optional
        Timeout in seconds passed to every HTTP request.
    raise_errors : bool, optional
        When true, failures raise :class:`CherwellError` subclasses
        instead of being logged and turned into ``None`` results.

    Notes
    -----
    Token state lives on the instance and is updated without any
    locking, so an instance must not be shared between threads.
    """

    # Refresh the access token this long before it expires
    _TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

    def __init__(
        self,
        *,
        username: str,
        password: str,
        client_id: str,
        base_uri: str,
        auth_mode: str = "Internal",
        grant_type: str = "password",
        timeout: Optional[float] = None,
        raise_errors: bool = False,
    ) -> None:
        if not username:
            raise ValueError("username must be provided")
        if not client_id:
            raise ValueError("client_id must be provided")
        if not base_uri:
            raise ValueError("base_uri must be provided")

        self.username = username
        self.password = password
        self.client_id = client_id
        self.base_uri = base_uri
        self.auth_mode = auth_mode
        self.grant_type = grant_type
        self.timeout = timeout
        self.raise_errors = raise_errors

        # Token state, filled in by login() and _refresh_access_token()
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.token_type: Optional[str] = None
        self.expires_in: Optional[int] = None
        self.expires: Optional[str] = None
        self.issued: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Optional[CherwellSettings] = None) -> "CherwellClient":
        """Create a client from :class:`CherwellSettings`.

        When ``settings`` is omitted they are loaded from ``CHERWELL_*``
        environment variables (and a ``.env`` file, if present).
        """
        if settings is None:
            settings = CherwellSettings()
        return cls(**settings.model_dump())

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def _token_request(
        self, form: Dict[str, str], params: Optional[Dict[str, str]] = None
    ) -> TokenResponse:
        """POST ``form`` to the token endpoint and return the parsed token.

        Raises :class:`CherwellAuthError` on any failure.
        """
        url = self._url("token")
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        try:
            response = requests.post(
                url, data=form, params=params, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise CherwellAuthError(f"Failed to connect to auth server: {exc}") from exc

        if not response.ok:
            raise CherwellAuthError(
                f"Token request failed with status {response.status_code}: {response.text}"
            )
        try:
            token = TokenResponse.model_validate(_decode(response) or {})
        except ValueError as exc:
            raise CherwellAuthError(f"Could not read token response: {exc}") from exc
        if not token.access_token:
            raise CherwellAuthError("Token response did not contain an access_token")
        return token

    def _apply_token(self, token: TokenResponse) -> None:
        self.access_token = token.access_token
        if token.refresh_token:
            self.refresh_token = token.refresh_token
        self.token_type = token.token_type
        self.expires_in = token.expires_in
        self.expires = token.expires
        self.issued = token.issued

    def login(self) -> Optional["CherwellClient"]:
        """Exchange the credentials for an access/refresh token pair.

        Returns the client on success.  On failure the error is logged,
        the token state is left as it was and ``None`` is returned
        (or :class:`CherwellAuthError` is raised with ``raise_errors``).
        """
        form = {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "username": self.username,
        }
        if self.password:
            form["password"] = self.password
        try:
            token = self._token_request(form, params={"auth_mode": self.auth_mode})
        except CherwellAuthError as exc:
            logger.error("Login as %s failed: %s", self.username, exc)
            if self.raise_errors:
                raise
            return None
        self._apply_token(token)
        logger.info("Logged in to %s as %s", self.base_uri, self.username)
        return self

    def _refresh_access_token(self) -> bool:
        """Trade the refresh token for a new access token.

        Returns ``False`` when there is no refresh token or the exchange
        fails; the caller is expected to fall back to :meth:`login`.
        """
        if not self.refresh_token:
            return False
        form = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "refresh_token": self.refresh_token,
        }
        try:
            token = self._token_request(form)
        except CherwellAuthError as exc:
            logger.warning("Token refresh failed: %s", exc)
            return False
        self._apply_token(token)
        logger.info("Refreshed access token, now valid until %s", self.expires)
        return True

    @property
    def token_expires_at(self) -> Optional[datetime]:
        """Expiry of the access token as an aware UTC datetime, if known."""
        if not self.expires:
            return None
        try:
            expires_at = parsedate_to_datetime(self.expires)
        except (TypeError, ValueError):
            return None
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at

    def _validate_token(self) -> bool:
        """Return ``True`` while the access token is good for five more minutes."""
        expires_at = self.token_expires_at
        if expires_at is None:
            logger.debug("Could not parse token expiry %r", self.expires)
            return False
        return datetime.now(timezone.utc) < expires_at - self._TOKEN_REFRESH_MARGIN

    def _ensure_token(self) -> None:
        if self._validate_token():
            return
        if self._refresh_access_token():
            return
        logger.info("Re-authenticating as %s", self.username)
        self.login()

    # ------------------------------------------------------------------
    # HTTP request helpers
    # ------------------------------------------------------------------
    def _url(self, path: str) -> str:
        """Join ``path`` onto ``base_uri``; absolute URLs are returned as-is."""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_uri.rstrip('/')}/{path.lstrip('/')}"

    def _send(self, method: str, url: str, payload: Any) -> Any:
        """Issue one API call and return the decoded JSON body.

        Without a payload only the client id is sent, form encoded.
        Raises :class:`CherwellAPIError` on transport or decode errors.
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self.access_token}",
        }
        if payload is None:
            data: Any = {"client_id": self.client_id}
        else:
            if isinstance(payload, BaseModel):
                payload = to_payload(payload)
            try:
                data = json.dumps(payload)
            except (TypeError, ValueError) as exc:
                raise CherwellAPIError(
                    f"Failed to encode request body: {exc}", method=method, url=url
                ) from exc

        try:
            response = requests.request(
                method=method,
                url=url,
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise CherwellAPIError(
                f"Failed to connect to {url}: {exc}", method=method, url=url
            ) from exc

        if response.status_code >= 400:
            # The vendor reports errors inside the body, so keep going
            logger.warning("%s %s returned HTTP %s", method, url, response.status_code)
        try:
            return _decode(response)
        except ValueError as exc:
            raise CherwellAPIError(
                f"Failed to decode response of {method} {url} "
                f"(HTTP {response.status_code}): {exc}",
                method=method,
                url=url,
                status_code=response.status_code,
            ) from exc

    def _request(
        self,
        method: str,
        path: str,
        payload: Any = None,
        response_model: Optional[ResponseModel] = None,
    ) -> Any:
        """Perform an authenticated call and parse its response.

        Parameters
        ----------
        method : str
            HTTP verb, case insensitive.
        path : str
            Endpoint path relative to ``base_uri`` (placeholders already
            substituted).
        payload : object, optional
            Request body.  Pydantic models are serialised by alias.
        response_model : type or TypeAdapter, optional
            Pydantic model (or adapter) the JSON body is validated into.

        Returns
        -------
        Any
            The validated model, the raw JSON when no model is given, or
            ``None`` if the call failed or the body was empty.
        """
        method = method.upper()
        url = self._url(path)
        try:
            self._ensure_token()
            body = self._send(method, url, payload)
            if body is None or response_model is None:
                return body
            try:
                if isinstance(response_model, TypeAdapter):
                    return response_model.validate_python(body)
                return response_model.model_validate(body)
            except ValidationError as exc:
                raise CherwellAPIError(
                    f"Unexpected response from {method} {url}: {exc}", method=method, url=url
                ) from exc
        except CherwellError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            if self.raise_errors:
                raise
            return None

    def _present(self, obj: Any, what: str) -> bool:
        if obj is None:
            logger.error("%s cannot be None", what)
            return False
        return True

    # ------------------------------------------------------------------
    # Business objects
    # ------------------------------------------------------------------
    def get_business_object_summaries(self) -> Optional[List[BusinessObject]]:
        """Return the summaries of all business objects."""
        return self._request(
            "GET", uris.GET_BUSOB_SUMMARIES_ALL, response_model=_BUSINESS_OBJECT_LIST
        )

    def _find_business_object(
        self, match: Callable[[BusinessObject], bool]
    ) -> Optional[BusinessObject]:
        for summary in self.get_business_object_summaries() or []:
            if match(summary):
                return summary
            for member in summary.group_summaries:
                if match(member):
                    return member
        return None

    def get_business_object_by_display_name(self, display_name: str) -> Optional[BusinessObject]:
        """Find a business object (or group member) by its display name."""
        return self._find_business_object(lambda b: b.display_name == display_name)

    def get_business_object_by_id(self, bus_ob_id: str) -> Optional[BusinessObject]:
        """Find a business object (or group member) by its ``busObId``."""
        return self._find_business_object(lambda b: b.bus_ob_id == bus_ob_id)

    def get_business_object_template(
        self, bus_ob: BusinessObject
    ) -> Optional[BusinessObjectTemplate]:
        """Return the template (all fields, including required ones) of ``bus_ob``."""
        if not self._present(bus_ob, "BusinessObject"):
            return None
        query = {
            "busObId": bus_ob.bus_ob_id,
            "includeAll": True,
            "includeRequired": True,
        }
        return self._request(
            "POST", uris.GET_BUSOB_TEMPLATE, query, response_model=BusinessObjectTemplate
        )

    def get_business_object_schema(
        self, bus_ob: BusinessObject
    ) -> Optional[BusinessObjectSchema]:
        """Return the schema of ``bus_ob``, including its relationships."""
        if not self._present(bus_ob, "BusinessObject"):
            return None
        uri = uris.format_uri(uris.GET_BUSOB_SCHEMA, busobid=bus_ob.bus_ob_id)
        return self._request("GET", uri, response_model=BusinessObjectSchema)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------
    def get_record_by_public_id(
        self, bus_ob: BusinessObject, public_id: str
    ) -> Optional[BusinessObjectRecord]:
        if not self._present(bus_ob, "BusinessObject"):
            return None
        uri = uris.format_uri(
            uris.GET_BUSOB_REC_BY_PUBLIC_ID, busobid=bus_ob.bus_ob_id, busobpublicid=public_id
        )
        record = self._request("GET", uri, response_model=BusinessObjectRecord)
        return record.process_fields() if record is not None else None

    def get_record_by_rec_id(
        self, bus_ob: BusinessObject, rec_id: str
    ) -> Optional[BusinessObjectRecord]:
        if not self._present(bus_ob, "BusinessObject"):
            return None
        uri = uris.format_uri(
            uris.GET_BUSOB_REC_BY_REC_ID, busobid=bus_ob.bus_ob_id, busobrecid=rec_id
        )
        record = self._request("GET", uri, response_model=BusinessObjectRecord)
        return record.process_fields() if record is not None else None

    def _resolve_field_ids(self, record: BusinessObjectRecord) -> bool:
        """Fill in missing field ids of ``record`` from its template.

        Fields are matched by name or display name.  Returns ``False`` if
        the template is needed but cannot be fetched.
        """
        missing = [f for f in record.fields if not f.field_id]
        if not missing:
            return True
        template = self.get_business_object_template(BusinessObject(bus_ob_id=record.bus_ob_id))
        if template is None:
            logger.error("Cannot resolve field ids of business object %s", record.bus_ob_id)
            return False
        for field in missing:
            for known in template.fields:
                if field.name in (known.name, known.display_name) or field.display_name in (
                    known.name,
                    known.display_name,
                ):
                    field.field_id = known.field_id
                    field.name = field.name or known.name
                    field.display_name = field.display_name or known.display_name
                    break
            else:
                logger.warning(
                    "Business object %s has no field %r",
                    record.bus_ob_id,
                    field.display_name or field.name,
                )
        return True

    def save_record(self, record: BusinessObjectRecord) -> Optional[BusinessObjectRecord]:
        """Commit ``record.field_values`` to its fields and save the record.

        Only fields whose value changed are marked dirty.  Fields given
        without a field id (as built by :meth:`BusinessObject.new_record`)
        get it from the business object template first.  Returns the
        vendor's answer, with ``field_values`` populated.
        """
        if not self._present(record, "BusinessObjectRecord"):
            return None
        if not self._resolve_field_ids(record):
            return None
        record.persist = True
        for name in record.sync_fields():
            logger.debug("Changed field %r of record %s", name, record.bus_ob_rec_id)
        saved = self._request(
            "POST", uris.SAVE_BUSOB_REC, record, response_model=BusinessObjectRecord
        )
        return saved.process_fields() if saved is not None else None

    def delete_record(self, record: BusinessObjectRecord) -> Optional[BusinessObjectRecord]:
        if not self._present(record, "BusinessObjectRecord"):
            return None
        uri = uris.format_uri(
            uris.DELETE_BUSOB_REC, busobid=record.bus_ob_id, busobrecid=record.bus_ob_rec_id
        )
        return self._request("DELETE", uri, response_model=BusinessObjectRecord)

    # ------------------------------------------------------------------
    # Searches
    # ------------------------------------------------------------------
    def build_filters(
        self, bus_ob: BusinessObject, *filters: Sequence[str]
    ) -> Optional[List[Filter]]:
        """Turn ``(field display name, operator, value)`` triples into filters.

        Field ids are looked up in the business object template.
        Triples naming an unknown field are dropped; a malformed triple
        makes the whole call return ``None``.
        """
        if not self._present(bus_ob, "BusinessObject"):
            return None
        for triple in filters:
            if len(triple) != 3:
                logger.error(
                    "Invalid filter %r, want (field display name, operator, value)", triple
                )
                return None
        template = self.get_business_object_template(bus_ob)
        if template is None:
            return None

        resolved = []
        for field in template.fields:
            for name, operator, value in filters:
                if field.display_name == name:
                    resolved.append(
                        Filter(
                            field_id=field.field_id,
                            field_name=name,
                            operator=operator,
                            value=value,
                        )
                    )
        if filters and not resolved:
            logger.warning(
                "No field of %s matches the filters %r", bus_ob.display_name, filters
            )
        return resolved

    def search(self, query: Search) -> Optional[SearchResult]:
        """Run a prepared :class:`Search` as is."""
        return self._request("POST", uris.GET_SEARCH_RESULTS, query, response_model=SearchResult)

    def search_records(
        self, bus_ob: BusinessObject, *filters: Sequence[str]
    ) -> Optional[List[BusinessObjectRecord]]:
        """Return all records of ``bus_ob`` matching ``filters``.

        >>> client.search_records(incident, ("Status", "eq", "New"))  # doctest: +SKIP
        """
        resolved = self.build_filters(bus_ob, *filters)
        if resolved is None:
            return None
        query = Search(bus_ob_id=bus_ob.bus_ob_id, filters=resolved, include_all_fields=True)
        result = self.search(query)
        if result is None:
            return None
        return [record.process_fields() for record in result.business_objects]

    def search_record(
        self, bus_ob: BusinessObject, *filters: Sequence[str]
    ) -> Optional[BusinessObjectRecord]:
        """Return the first record of ``bus_ob`` matching ``filters``, if any."""
        records = self.search_records(bus_ob, *filters)
        if not records:
            return None
        return records[0]

    def quick_search(self, text: str) -> Optional[QuickSearchResult]:
        return self._request(
            "POST",
            uris.GET_QUICK_SEARCH_RESULTS,
            {"searchText": text},
            response_model=QuickSearchResult,
        )

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------
    def _relationship_id(self, record: BusinessObjectRecord, relationship_name: str) -> Optional[str]:
        bus_ob = self.get_business_object_by_id(record.bus_ob_id)
        if bus_ob is None:
            logger.error("Not found: business object %s", record.bus_ob_id)
            return None
        schema = self.get_business_object_schema(bus_ob)
        if schema is None:
            logger.error("Not found: schema of business object %s", bus_ob.display_name)
            return None
        relationship_id = schema.get_relationship_id(relationship_name)
        if not relationship_id:
            logger.error(
                "Business object %s has no relationship %r", bus_ob.display_name, relationship_name
            )
            return None
        return relationship_id

    def get_related_records(
        self, record: BusinessObjectRecord, relationship_name: str
    ) -> Optional[List[BusinessObjectRecord]]:
        """Return the records related to ``record`` through ``relationship_name``."""
        if not self._present(record, "BusinessObjectRecord"):
            return None
        relationship_id = self._relationship_id(record, relationship_name)
        if relationship_id is None:
            return None
        uri = uris.format_uri(
            uris.GET_RELATED_BUSOB,
            busobid=record.bus_ob_id,
            busobrecid=record.bus_ob_rec_id,
            relationshipid=relationship_id,
        )
        related = self._request("GET", uri, response_model=RelatedBusinessObjects)
        if related is None:
            return None
        return [r.process_fields() for r in related.related_business_objects]

    def _change_link(
        self,
        method: str,
        template: str,
        parent: BusinessObjectRecord,
        child: BusinessObjectRecord,
        relationship_name: str,
    ) -> Optional[ErrorEnvelope]:
        if not self._present(parent, "BusinessObjectRecord"):
            return None
        if not self._present(child, "Child BusinessObjectRecord"):
            return None
        relationship_id = self._relationship_id(parent, relationship_name)
        if relationship_id is None:
            return None
        uri = uris.format_uri(
            template,
            busobid=parent.bus_ob_id,
            busobrecid=parent.bus_ob_rec_id,
            relationshipid=relationship_id,
            childbusobid=child.bus_ob_id,
            childbusobrecid=child.bus_ob_rec_id,
        )
        return self._request(method, uri, response_model=ErrorEnvelope)

    def link_records(
        self,
        parent: BusinessObjectRecord,
        child: BusinessObjectRecord,
        relationship_name: str,
    ) -> Optional[ErrorEnvelope]:
        """Link ``child`` to ``parent`` through the named relationship."""
        return self._change_link("GET", uris.LINK_BUSOB_REC, parent, child, relationship_name)

    def unlink_records(
        self,
        parent: BusinessObjectRecord,
        child: BusinessObjectRecord,
        relationship_name: str,
    ) -> Optional[ErrorEnvelope]:
        """Remove the link between ``parent`` and ``child``."""
        return self._change_link("DELETE", uris.UNLINK_BUSOB_REC, parent, child, relationship_name)

    def get_team_members(
        self,
        team_name: str,
        *,
        unit_object: str = "Organisationseinheit",
        type_field: str = "Typ",
        team_type: str = "Team",
        name_field: str = "Voller Name",
        member_relationship: str = "Organisation Unit Links Contacts Member",
    ) -> Optional[List[BusinessObjectRecord]]:
        """Return the contacts that are members of the team ``team_name``.

        The team is the organisational-unit record of type ``team_type``
        whose public id is ``team_name``.  The keyword arguments name the
        business object, fields and relationship involved; the defaults
        are those of a German-localised Cherwell installation.
        """
        unit = self.get_business_object_by_display_name(unit_object)
        if unit is None:
            logger.error("Not found: business object %r", unit_object)
            return None
        teams = self.search_records(
            unit, (type_field, "EQ", team_type), (name_field, "EQ", team_name)
        )
        for team in teams or []:
            logger.debug("Team: %s | RecID: %s", team.bus_ob_public_id, team.bus_ob_rec_id)
            if team.bus_ob_public_id == team_name:
                return self.get_related_records(team, member_relationship)
        logger.error("Not found: team %r", team_name)
        return None
