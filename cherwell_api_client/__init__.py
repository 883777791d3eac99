"""
Python client for interacting with the Cherwell REST API.

This package provides a `CherwellClient` class that logs in against
the Cherwell ``token`` endpoint, keeps its access token fresh and
offers typed helpers for business objects, business object records,
searches and relationships.

Examples
--------

```python
from cherwell_api_client import CherwellClient

client = CherwellClient(
    username="api-user",
    password="secret",
    client_id="00000000-0000-0000-0000-000000000000",
    base_uri="https://cherwell.example.com/CherwellAPI/",
)
client.login()

incident = client.get_business_object_by_display_name("Incident")
record = client.get_record_by_public_id(incident, "102345")
print(record.field_values["Status"])
```

Alternatively, `CherwellClient.from_settings()` reads the same values
from ``CHERWELL_*`` environment variables.

See Also
--------
The Cherwell REST API documentation (the ``/CherwellAPI/Swagger``
page of your server) lists the endpoints and payloads mirrored by
the models in :mod:`cherwell_api_client.models`.
"""

from .client import CherwellClient
from .config import CherwellSettings
from .exceptions import CherwellAPIError, CherwellAuthError, CherwellError
from .models import (
    BusinessObject,
    BusinessObjectRecord,
    BusinessObjectSchema,
    BusinessObjectTemplate,
    ErrorEnvelope,
    Filter,
    Link,
    QuickSearchResult,
    RecordField,
    RelatedBusinessObjects,
    Search,
    SearchResult,
)
from .uris import format_uri

__all__ = [
    "CherwellClient",
    "CherwellSettings",
    "CherwellError",
    "CherwellAuthError",
    "CherwellAPIError",
    "BusinessObject",
    "BusinessObjectRecord",
    "BusinessObjectSchema",
    "BusinessObjectTemplate",
    "ErrorEnvelope",
    "Filter",
    "Link",
    "QuickSearchResult",
    "RecordField",
    "RelatedBusinessObjects",
    "Search",
    "SearchResult",
    "format_uri",
]
