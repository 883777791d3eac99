"""Cherwell REST endpoint templates and placeholder substitution.

Templates carry single-character placeholders which are replaced
positionally by :func:`format_uri`.  The paths (including the mixed
``V1``/``v1`` casing) are exactly what the Cherwell server expects.
"""

from __future__ import annotations

from typing import Dict

DELETE_BUSOB_REC = "api/V1/deletebusinessobject/busobid/$/busobrecid/#"
SAVE_BUSOB_REC = "api/V1/savebusinessobject"
GET_SEARCH_RESULTS = "api/V1/getsearchresults"
GET_BUSOB_TEMPLATE = "api/V1/getbusinessobjecttemplate"
GET_QUICK_SEARCH_RESULTS = "api/V1/getquicksearchresults"
GET_BUSOB_REC_BY_REC_ID = "api/v1/getbusinessobject/busobid/$/busobrecid/#"
GET_BUSOB_REC_BY_PUBLIC_ID = "api/v1/getbusinessobject/busobid/$/publicid/*"
GET_BUSOB_SCHEMA = "api/v1/getbusinessobjectschema/busobid/$?includerelationships=true"
GET_BUSOB_SUMMARIES_ALL = "api/v1/getbusinessobjectsummaries/type/All"
GET_RELATED_BUSOB = (
    "api/V1/getrelatedbusinessobject/parentbusobid/$/parentbusobrecid/#/relationshipid/?"
)
LINK_BUSOB_REC = (
    "api/V2/linkrelatedbusinessobject/parentbusobid/$/parentbusobrecid/#"
    "/relationshipid/?/busobid/&/busobrecid/+"
)
UNLINK_BUSOB_REC = (
    "api/V1/unlinkrelatedbusinessobject/parentbusobid/$/parentbusobrecid/#"
    "/relationshipid/?/busobid/&/busobrecid/+"
)

# Placeholder name -> token, in substitution order.
PLACEHOLDERS: Dict[str, str] = {
    "busobid": "$",
    "busobrecid": "#",
    "busobpublicid": "*",
    "childbusobid": "&",
    "childbusobrecid": "+",
    "relationshipid": "?",
}


def format_uri(template: str, **values: str) -> str:
    """Replace the placeholders of ``template`` with ``values``.

    Each known placeholder present in ``values`` replaces the first
    occurrence of its token only.  Unknown names are ignored and
    tokens without a value are left in place.

    >>> format_uri(GET_BUSOB_REC_BY_REC_ID, busobid="B1", busobrecid="R9")
    'api/v1/getbusinessobject/busobid/B1/busobrecid/R9'
    """
    uri = template
    for name, token in PLACEHOLDERS.items():
        if name in values:
            uri = uri.replace(token, str(values[name]), 1)
    return uri
