"""Remote gateway adapters."""

from .rest_gateways import RestMetadataGateway, RestStorageGateway  # noqa: F401
