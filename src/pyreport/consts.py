SDK_NAME = "pyreport"
VERSION = "0.1.0"

# Version of the ingestion protocol spoken by the HTTP transport.
PROTOCOL_VERSION = 7

DEFAULT_MAX_BREADCRUMBS = 100
