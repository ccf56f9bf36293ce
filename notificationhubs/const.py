# notificationhubs/const.py
"""Constants for the Notification Hubs registration client.

All constants defined here are intended to be import-safe across the package.
"""

from __future__ import annotations

from pathlib import Path

# --------------------------------------------------------------------------------------
# Core identifiers
# --------------------------------------------------------------------------------------
API_VERSION: str = "2013-04"
DEFAULT_API_ORIGIN: str = "PythonSdk"

# Name under which plain (non-template) registrations are cached
DEFAULT_REGISTRATION_NAME: str = "$Default"

# --------------------------------------------------------------------------------------
# REST surface
# --------------------------------------------------------------------------------------
CREATE_REGISTRATION_ID_PATH: str = "{path}/registrationids/?api-version={api_version}"
REGISTRATION_PATH: str = "{path}/Registrations/{registration_id}?api-version={api_version}"
LIST_REGISTRATIONS_PATH: str = (
    "{path}/Registrations/?$filter=deviceToken+eq+'{device_token}'"
    "&api-version={api_version}"
)

METHOD_GET: str = "GET"
METHOD_POST: str = "POST"
METHOD_PUT: str = "PUT"
METHOD_DELETE: str = "DELETE"

HEADER_AUTHORIZATION: str = "Authorization"
HEADER_USER_AGENT: str = "User-Agent"
HEADER_CONTENT_TYPE: str = "Content-Type"
HEADER_IF_MATCH: str = "If-Match"
HEADER_LOCATION: str = "Location"

CONTENT_TYPE_JSON: str = "application/json"
CONTENT_TYPE_XML: str = "application/xml"

# Unconditional match for DELETE
ETAG_ANY: str = "*"

# --------------------------------------------------------------------------------------
# Timeouts / token lifetimes
# --------------------------------------------------------------------------------------
REQUEST_TIMEOUT_S: float = 60.0
SAS_TOKEN_TTL_S: int = 20 * 60
# Refresh cached SAS tokens this many seconds before they expire
SAS_TOKEN_EXPIRY_MARGIN_S: int = 60

# --------------------------------------------------------------------------------------
# Local storage
# --------------------------------------------------------------------------------------
STORAGE_VERSION: int = 1
DEFAULT_STORAGE_DIR: Path = Path.home() / ".notificationhubs"

# --------------------------------------------------------------------------------------
# XML namespaces
# --------------------------------------------------------------------------------------
ATOM_NS: str = "http://www.w3.org/2005/Atom"
SERVICEBUS_NS: str = "http://schemas.microsoft.com/netservices/2010/10/servicebus/connect"
XML_SCHEMA_INSTANCE_NS: str = "http://www.w3.org/2001/XMLSchema-instance"
