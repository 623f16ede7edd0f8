# core/exceptions.py

class FitCacheError(Exception):
    """Base exception for fitcache errors."""
    pass

class CacheKeyError(FitCacheError, ValueError):
    """Raised when a composite record key is malformed."""
    pass

class FingerprintError(FitCacheError):
    """Raised when a module's version or checksum cannot be determined."""
    pass

class SettingsError(FitCacheError):
    """Raised when cache settings cannot be read or fail validation."""
    pass
