"""Error taxonomy for an ingestion run."""


class IngestError(Exception):
    """Base class for ingestion errors."""


class FatalSetupError(IngestError):
    """Run cannot start; raised before any network I/O."""


class SourceNotConfigured(FatalSetupError):
    """The configured source name has no row in the sources table."""

    def __init__(self, source_name: str):
        super().__init__(f"Source not found in sources table: {source_name!r}")
        self.source_name = source_name


class FatalListingFetchError(IngestError):
    """Listing page unreachable or unparseable; nothing can be ingested."""


class ItemFetchError(IngestError):
    """Detail page for one item could not be fetched or parsed."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


class ItemUpsertError(IngestError):
    """The store rejected the write of one item."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url
