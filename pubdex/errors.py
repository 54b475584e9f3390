"""Exception types raised across the indexer."""


class BlockchainError(Exception):
    """A key, script or address could not be parsed or derived."""


class DBError(Exception):
    """A key-value store operation failed or returned malformed data."""


class IndexerError(Exception):
    """The indexer loop hit an unrecoverable condition."""