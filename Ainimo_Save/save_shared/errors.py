class PersistenceError(Exception):
    pass

class StorageError(PersistenceError):
    def __init__(self , operation , cause=None):
        self.operation = operation
        self.cause = cause
        message = f"Storage {operation} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)

class StorageUnavailableError(StorageError):
    def __init__(self , message):
        super().__init__("connect" , message)

class FormatError(PersistenceError):
    def __init__(self , reason):
        self.reason = reason
        message = f"Malformed save payload: {reason}"
        super().__init__(message)

class UnsupportedVersionError(FormatError):
    def __init__(self , version):
        self.version = version
        super().__init__(f"unsupported payload version {version!r}")

class AuthFailure(PersistenceError):
    def __init__(self , reason="authentication tag mismatch"):
        self.reason = reason
        message = f"Save payload failed authentication: {reason}"
        super().__init__(message)

class ValidationRejected(PersistenceError):
    def __init__(self , reason):
        self.reason = reason
        message = f"Decoded save rejected: {reason}"
        super().__init__(message)

class SerializationError(PersistenceError):
    def __init__(self , reason):
        self.reason = reason
        message = f"Game state could not be serialized: {reason}"
        super().__init__(message)

class SecretMissingError(PersistenceError):
    def __init__(self , env_var):
        self.env_var = env_var
        message = f"Encryption is enabled but no storage secret is set ({env_var})"
        super().__init__(message)
