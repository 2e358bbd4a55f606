"""
Exceptions raised by the reporting client.

Only `InvalidDSN` ever reaches a caller, and only from the low-level
`DSN.parse`; the client factories catch it and log instead. `SendFailure`
is raised inside transports and absorbed by the delivery pipeline.
"""


class ReportingError(Exception):
    pass


class InvalidDSN(ReportingError, ValueError):
    pass


class SendFailure(ReportingError):
    pass
