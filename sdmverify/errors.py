"""Exception hierarchy for SDM decoding, configuration, cipher and store errors."""


class SdmError(Exception):
    """Base class for every error raised by sdmverify."""


# ──────────────────────────────────────────────
# Malformed input
# ──────────────────────────────────────────────

class DecodingError(SdmError, ValueError):
    """Input could not be decoded into UID, counter or MAC."""


class InvalidHex(DecodingError):
    pass


class InvalidUidLength(DecodingError):
    pass


class InvalidCounter(DecodingError):
    pass


class InvalidMacLength(DecodingError):
    pass


class ParamError(DecodingError):
    """A scanned URL is unusable."""


class MissingParameter(ParamError):
    def __init__(self, name: str):
        super().__init__(f"Missing URL parameter: {name}")
        self.name = name


class InvalidUrl(ParamError):
    pass


# ──────────────────────────────────────────────
# Programmer / deployment errors
# ──────────────────────────────────────────────

class ConfigurationError(SdmError):
    """Key material or derivation parameters are wrong. Never recovered."""


class InvalidKeyLength(ConfigurationError, ValueError):
    pass


class DiversificationVectorOverflow(ConfigurationError, ValueError):
    pass


class UnsupportedCipherSuite(SdmError, NotImplementedError):
    """The requested cipher suite has no primitive implementation."""


# ──────────────────────────────────────────────
# Runtime failures
# ──────────────────────────────────────────────

class CounterStoreError(SdmError):
    """The replay counter store could not be read or updated."""
